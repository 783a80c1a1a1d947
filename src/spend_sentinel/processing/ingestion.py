"""Statement ingestion: parse, deduplicate, persist and run the policy pass."""

from typing import Optional

from spend_sentinel.config import IngestConfig
from spend_sentinel.models.report import IngestResult
from spend_sentinel.models.transaction import PersistedTransaction
from spend_sentinel.parsers.base import ParseError
from spend_sentinel.parsers.detector import StatementParser
from spend_sentinel.processing.deduplicator import Deduplicator
from spend_sentinel.processing.policy import PolicyService
from spend_sentinel.storage.base import StoreError, TransactionStore
from spend_sentinel.utils.logging_config import LogContext, get_logger

logger = get_logger(__name__)


class StatementIngestor:
    """Turns an uploaded statement into ledger records.

    Steps:
    1. Parse the file (CSV, PDF, or a placeholder for anything else)
    2. Drop candidates already in the ledger and save the rest
    3. Run the policy service over the newly saved records, if one is set
    """

    def __init__(
        self,
        store: TransactionStore,
        config: Optional[IngestConfig] = None,
        parser: Optional[StatementParser] = None,
        policy_service: Optional[PolicyService] = None,
        account_type: str = "personal",
    ):
        """Initialize ingestor.

        Args:
            store: Ledger to save into.
            config: Ingestion limits. Defaults to IngestConfig().
            parser: Statement parser. Built from config when omitted.
            policy_service: Optional compliance checker for saved records.
            account_type: Account type passed to the policy service.
        """
        self.store = store
        self.config = config or IngestConfig()
        self.parser = parser or StatementParser(self.config)
        self.deduplicator = Deduplicator(store, window_hours=self.config.duplicate_window_hours)
        self.policy_service = policy_service
        self.account_type = account_type

    def ingest(
        self,
        user_id: str,
        content: bytes,
        filename: str,
        mime_type: Optional[str] = None,
    ) -> IngestResult:
        """Ingest one statement file for a user.

        Args:
            user_id: Owner of the statement.
            content: Raw file bytes.
            filename: Original file name.
            mime_type: Declared MIME type, if any.

        Returns:
            IngestResult. ``success`` is False only when the file as a whole
            could not be read.
        """
        with LogContext(logger, "ingest", user_id=user_id, filename=filename, size=len(content)):
            try:
                parsed = self.parser.parse(content, filename, mime_type)
            except ParseError as e:
                logger.error(f"Could not read statement {filename}: {e}")
                return IngestResult(success=False, message=f"Could not process statement: {e}")

            dedup = self.deduplicator.filter_and_save(user_id, parsed.transactions)

            if self.policy_service is not None and dedup.saved_records:
                self._apply_policy(self.policy_service, user_id, dedup.saved_records)

        message = (
            f"Statement processed successfully. {dedup.saved_count} new transactions added "
            f"from your file, {dedup.duplicate_count} duplicates skipped."
        )
        logger.info(message)
        return IngestResult(
            success=True,
            message=message,
            transaction_count=dedup.saved_count,
            transactions=dedup.saved_records,
            duplicates_skipped=dedup.duplicate_count,
            rows_skipped=parsed.skipped_count,
        )

    def _apply_policy(
        self, policy_service: PolicyService, user_id: str, saved: list[PersistedTransaction]
    ) -> None:
        try:
            all_transactions = self.store.find(user_id)
        except StoreError as e:
            logger.warning(f"Skipping policy checks for user {user_id}, could not load ledger: {e}")
            return

        for txn in saved:
            try:
                verdict = policy_service.check_compliance(txn, self.account_type, all_transactions, user_id)
                self.store.save_policy_status(txn.id, verdict.status, verdict.rule)
            except Exception as e:
                logger.warning(f"Policy check failed for transaction {txn.id}, keeping default status: {e}")
                continue
            txn.policy_status = verdict.status
            txn.policy_rule = verdict.rule
