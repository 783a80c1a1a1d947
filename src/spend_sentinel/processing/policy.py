"""Interface to the external policy compliance service."""

from typing import Protocol

from spend_sentinel.models.report import PolicyCheckResult
from spend_sentinel.models.transaction import PersistedTransaction


class PolicyService(Protocol):
    """Evaluates a transaction against the owner's spending policy.

    Limits and violation bookkeeping live in the implementation; ingestion
    only stores the returned status and rule on the record.
    """

    def check_compliance(
        self,
        transaction: PersistedTransaction,
        account_type: str,
        all_user_transactions: list[PersistedTransaction],
        user_id: str,
    ) -> PolicyCheckResult: ...
