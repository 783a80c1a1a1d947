"""Statistical anomaly detection over a user's outflows."""

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from spend_sentinel.config import AnomalyConfig
from spend_sentinel.models.report import (
    AnomalyDetails,
    AnomalyRecord,
    AnomalyScanResult,
    AnomalySummary,
    CategoryAnalysisResult,
    CategoryBaseline,
    CategorySpending,
    ExpectedRange,
    Severity,
)
from spend_sentinel.models.transaction import AnomalyState, PersistedTransaction
from spend_sentinel.storage.base import StoreError, TransactionStore
from spend_sentinel.utils.date_utils import subtract_months
from spend_sentinel.utils.decimal_utils import ZERO, format_currency, round_half_up
from spend_sentinel.utils.logging_config import get_logger

logger = get_logger(__name__)

# Money-in categories never scored even when the amount is negative
INCOME_CATEGORIES = frozenset({"salary", "wage", "income", "refund", "deposit", "transfer-in"})

PERIODS = ("this-week", "this-month", "last-30-days")

SEVERITY_LEVELS = ("all", "minor", "moderate", "major")

# Small purchases close to the usual amount are never flagged
SMALL_AMOUNT = Decimal("20")
SMALL_DEVIATION = Decimal("10")

FALLBACK_MAJOR_MULTIPLIER = Decimal("5")

ONE = Decimal("1")

# Category shares are reported to one decimal place
PERCENT_PLACES = Decimal("0.1")


def compute_baseline(category: Optional[str], magnitudes: list[Decimal]) -> CategoryBaseline:
    """Compute mean and population standard deviation.

    Args:
        category: Category label, or None for the cross-category baseline.
        magnitudes: Absolute outflow amounts.

    Returns:
        CategoryBaseline for the samples.
    """
    count = len(magnitudes)
    if count == 0:
        return CategoryBaseline(category=category, mean=ZERO, std_dev=ZERO, sample_count=0)

    mean = sum(magnitudes, ZERO) / count
    variance = sum(((value - mean) ** 2 for value in magnitudes), ZERO) / count
    return CategoryBaseline(category=category, mean=mean, std_dev=variance.sqrt(), sample_count=count)


def compute_analysis_window(
    period: str,
    today: date,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> tuple[date, date]:
    """Resolve an analysis period to inclusive start and end dates.

    Args:
        period: One of "this-week", "this-month" or "last-30-days".
        today: Reference date.
        start_date: Explicit start, overriding the period.
        end_date: Explicit end (defaults to today).

    Returns:
        (start, end) dates.

    Raises:
        ValueError: If the period is unknown or start is after end.
    """
    end = end_date or today
    if start_date is not None:
        start = start_date
    elif period == "this-week":
        start = today - timedelta(days=7)
    elif period == "this-month":
        start = today.replace(day=1)
    elif period == "last-30-days":
        start = today - timedelta(days=30)
    else:
        raise ValueError(f"Unknown period {period!r}, expected one of {', '.join(PERIODS)}")

    if start > end:
        raise ValueError(f"Analysis window start {start} is after end {end}")
    return start, end


def is_income_category(category: str) -> bool:
    return category.lower() in INCOME_CATEGORIES


def is_analyzable(txn: PersistedTransaction) -> bool:
    """Whether a record takes part in anomaly scoring."""
    return (
        txn.is_outflow
        and not is_income_category(txn.category)
        and txn.anomaly_state is not AnomalyState.DISMISSED_BY_USER
    )


class AnomalyEngine:
    """Flags unusually large outflows against the user's own history.

    Each outflow in the analysis window is compared with the same category's
    outflows over the preceding months (6 by default):

    - major: |z| > 3.5 and more than 3x the category mean
    - moderate: |z| > 2.5 and more than 2.5x the mean
    - minor: more than 2x the mean and above mean + 2 standard deviations

    Categories with too little history fall back to a comparison with the
    average of all outflows. Inflows, income categories and transactions the
    user dismissed are never scored, and a dismissal is never overwritten
    by a scan.
    """

    def __init__(self, store: TransactionStore, config: Optional[AnomalyConfig] = None):
        """Initialize anomaly engine.

        Args:
            store: Ledger to read from and write results to.
            config: Anomaly thresholds. Defaults to AnomalyConfig().
        """
        self.store = store
        self.config = config or AnomalyConfig()

    def detect_anomalies(
        self,
        user_id: str,
        period: str = "this-month",
        severity_level: str = "all",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> AnomalyScanResult:
        """Score every eligible outflow in the period and persist the outcome.

        Args:
            user_id: Owner of the ledger.
            period: Analysis period label.
            severity_level: Only return anomalies of this severity ("all" for any).
                The summary always counts every anomaly found.
            start_date: Explicit window start.
            end_date: Explicit window end.
            today: Reference date (defaults to date.today()).

        Returns:
            AnomalyScanResult with anomalies most severe first.

        Raises:
            ValueError: If the period or severity level is unknown.
            StoreError: If the ledger cannot be read.
        """
        if severity_level not in SEVERITY_LEVELS:
            raise ValueError(f"Unknown severity level {severity_level!r}, expected one of {', '.join(SEVERITY_LEVELS)}")

        today = today or date.today()
        window_start, window_end = compute_analysis_window(period, today, start_date, end_date)

        targets = [
            txn for txn in self.store.find(user_id, start=window_start, end=window_end) if is_analyzable(txn)
        ]
        result = AnomalyScanResult(period=period)
        if not targets:
            logger.info(f"No outflows to analyze for user {user_id} between {window_start} and {window_end}")
            return result

        baselines, fallback = self._build_baselines(user_id, window_start)
        logger.info(
            f"Analyzing {len(targets)} transactions for user {user_id} "
            f"({window_start} to {window_end}, {len(baselines)} category baselines)"
        )

        scored = self._score_all(targets, baselines, fallback)

        records: list[AnomalyRecord] = []
        for txn, details in scored:
            if details is None:
                result.failed_count += 1
                continue
            result.analyzed_count += 1
            if self._write_back(txn, details) and details.is_anomaly:
                records.append(AnomalyRecord(transaction=txn, details=details))

        records.sort(key=lambda r: (-r.severity_rank, -abs(r.transaction.amount)))
        result.summary = AnomalySummary.from_records(records)
        if severity_level != "all":
            records = [r for r in records if r.details.severity is Severity(severity_level)]
        result.anomalies = records

        logger.info(
            f"Found {result.summary.total} anomalies for user {user_id} "
            f"(major={result.summary.major}, moderate={result.summary.moderate}, minor={result.summary.minor})"
        )
        if result.failed_count:
            logger.warning(f"{result.failed_count} transactions could not be analyzed for user {user_id}")
        return result

    def analyze_transaction(
        self,
        txn: PersistedTransaction,
        baselines: dict[str, CategoryBaseline],
        fallback: Optional[CategoryBaseline] = None,
    ) -> AnomalyDetails:
        """Score a single outflow against precomputed baselines.

        Args:
            txn: Transaction to score.
            baselines: Per-category baselines for the user.
            fallback: Cross-category baseline for sparse categories.

        Returns:
            AnomalyDetails for the transaction.
        """
        if not is_analyzable(txn):
            return AnomalyDetails.not_anomalous()

        current = abs(txn.amount)
        baseline = baselines.get(txn.category)
        if baseline is not None and baseline.sample_count >= self.config.min_category_samples:
            return self._score_against_category(txn.category, current, baseline)
        if fallback is not None and fallback.sample_count >= self.config.min_fallback_samples:
            return self._score_against_fallback(current, fallback)
        return AnomalyDetails.not_anomalous()

    def category_analysis(
        self,
        user_id: str,
        period: str = "this-month",
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
    ) -> CategoryAnalysisResult:
        """Break down a user's outflows in the analysis window by category.

        Args:
            user_id: Owner of the ledger.
            period: One of PERIODS, ignored when start_date is given.
            start_date: Explicit window start.
            end_date: Explicit window end.
            today: Reference date (defaults to date.today()).

        Returns:
            CategoryAnalysisResult with the largest category first.

        Raises:
            ValueError: If the period is unknown or the window is inverted.
            StoreError: If the ledger cannot be read.
        """
        today = today or date.today()
        window_start, window_end = compute_analysis_window(period, today, start_date, end_date)

        by_category: dict[str, list[Decimal]] = defaultdict(list)
        for txn in self.store.find(user_id, start=window_start, end=window_end):
            if txn.is_outflow:
                by_category[txn.category].append(abs(txn.amount))

        total = sum((sum(amounts, ZERO) for amounts in by_category.values()), ZERO)
        categories = []
        for category, amounts in by_category.items():
            amount = sum(amounts, ZERO)
            categories.append(
                CategorySpending(
                    category=category,
                    amount=round_half_up(amount),
                    transaction_count=len(amounts),
                    average=round_half_up(amount / len(amounts)),
                    percentage=round_half_up(amount / total * 100, PERCENT_PLACES),
                )
            )
        categories.sort(key=lambda c: (-c.amount, c.category))

        logger.info(
            f"Category analysis for user {user_id} ({window_start} to {window_end}): "
            f"{len(categories)} categories, {format_currency(total)} spent"
        )
        return CategoryAnalysisResult(
            categories=categories,
            total_spending=round_half_up(total),
            period=period,
            start_date=window_start,
            end_date=window_end,
        )

    def dismiss(self, user_id: str, txn_id: str) -> None:
        """Record that the user reviewed a transaction and considers it normal.

        Raises:
            StoreError: If the transaction does not belong to the user.
        """
        self._require_owned(user_id, txn_id)
        self.store.save_anomaly_state(txn_id, AnomalyState.DISMISSED_BY_USER, force=True)
        logger.info(f"Dismissed anomaly on transaction {txn_id} for user {user_id}")

    def reset(self, user_id: str, txn_id: str) -> None:
        """Return a transaction to the never-analyzed state.

        This is the only way to undo a dismissal.

        Raises:
            StoreError: If the transaction does not belong to the user.
        """
        self._require_owned(user_id, txn_id)
        self.store.save_anomaly_state(txn_id, AnomalyState.UNANALYZED, force=True)
        logger.info(f"Reset anomaly state on transaction {txn_id} for user {user_id}")

    def _build_baselines(
        self, user_id: str, window_start: date
    ) -> tuple[dict[str, CategoryBaseline], CategoryBaseline]:
        history_start = subtract_months(window_start, self.config.history_months)
        history_end = window_start - timedelta(days=1)
        history = self.store.find(user_id, start=history_start, end=history_end)

        by_category: dict[str, list[Decimal]] = defaultdict(list)
        overall: list[Decimal] = []
        for txn in history:
            if not txn.is_outflow or is_income_category(txn.category):
                continue
            by_category[txn.category].append(abs(txn.amount))
            overall.append(abs(txn.amount))

        logger.debug(
            f"Baseline window {history_start} to {history_end}: {len(overall)} outflows "
            f"in {len(by_category)} categories"
        )
        baselines = {category: compute_baseline(category, values) for category, values in by_category.items()}
        return baselines, compute_baseline(None, overall)

    def _score_all(
        self,
        targets: list[PersistedTransaction],
        baselines: dict[str, CategoryBaseline],
        fallback: CategoryBaseline,
    ) -> list[tuple[PersistedTransaction, Optional[AnomalyDetails]]]:
        def score(txn: PersistedTransaction) -> tuple[PersistedTransaction, Optional[AnomalyDetails]]:
            try:
                return txn, self.analyze_transaction(txn, baselines, fallback)
            except Exception as e:
                logger.warning(f"Could not analyze transaction {txn.id}: {e}")
                return txn, None

        if self.config.workers <= 1 or len(targets) == 1:
            return [score(txn) for txn in targets]

        with ThreadPoolExecutor(max_workers=self.config.workers) as executor:
            return list(executor.map(score, targets))

    def _write_back(self, txn: PersistedTransaction, details: AnomalyDetails) -> bool:
        if details.is_anomaly:
            state, reason, comparison = AnomalyState.FLAGGED, details.reason, details.comparison
        else:
            state, reason, comparison = AnomalyState.ANALYZED_CLEAN, None, None

        try:
            applied = self.store.save_anomaly_state(txn.id, state, reason, comparison)
        except StoreError as e:
            logger.warning(f"Could not save anomaly state for {txn.id}: {e}")
            return False

        if applied:
            txn.apply_anomaly(state, reason, comparison)
        else:
            logger.debug(f"Transaction {txn.id} was dismissed during the scan, leaving it unchanged")
        return applied

    def _score_against_category(self, category: str, current: Decimal, baseline: CategoryBaseline) -> AnomalyDetails:
        mean = baseline.mean
        std = baseline.std_dev
        z_score = (current - mean) / max(std, ONE)

        if current < SMALL_AMOUNT and abs(current - mean) < SMALL_DEVIATION:
            return AnomalyDetails.not_anomalous()

        if abs(z_score) > Decimal("3.5") and current > 3 * mean:
            severity = Severity.MAJOR
            ratio = round_half_up(current / mean, ONE)
            reason = f"This {category} expense is highly unusual - {ratio}x your typical spending"
        elif abs(z_score) > Decimal("2.5") and current > Decimal("2.5") * mean:
            severity = Severity.MODERATE
            reason = f"This {category} expense is significantly higher than usual"
        elif current > 2 * mean and current > mean + 2 * std:
            severity = Severity.MINOR
            reason = f"This {category} expense is above your normal range"
        else:
            return AnomalyDetails.not_anomalous()

        return AnomalyDetails(
            is_anomaly=True,
            severity=severity,
            reason=reason,
            comparison=(
                f"You usually spend ${round_half_up(mean):.2f} on {category}, "
                f"this was ${round_half_up(current):.2f}"
            ),
            z_score=round_half_up(z_score),
            expected_range=self._expected_range(baseline),
        )

    def _score_against_fallback(self, current: Decimal, fallback: CategoryBaseline) -> AnomalyDetails:
        average = fallback.mean
        if not (current > self.config.fallback_multiplier * average and current > self.config.fallback_floor):
            return AnomalyDetails.not_anomalous()

        severity = Severity.MAJOR if current > FALLBACK_MAJOR_MULTIPLIER * average else Severity.MODERATE
        return AnomalyDetails(
            is_anomaly=True,
            severity=severity,
            reason="This expense is unusually high compared to your typical spending patterns",
            comparison=(
                f"This ${round_half_up(current):.2f} expense is much higher than "
                f"your average expense of ${round_half_up(average):.2f}"
            ),
            z_score=round_half_up((current - average) / max(fallback.std_dev, ONE)),
            expected_range=self._expected_range(fallback),
        )

    def _expected_range(self, baseline: CategoryBaseline) -> ExpectedRange:
        return ExpectedRange(
            min=round_half_up(max(baseline.mean - baseline.std_dev, ZERO)),
            max=round_half_up(baseline.mean + baseline.std_dev),
            average=round_half_up(baseline.mean),
        )

    def _require_owned(self, user_id: str, txn_id: str) -> PersistedTransaction:
        txn = self.store.get(txn_id)
        if txn is None or txn.user_id != user_id or txn.is_deleted:
            raise StoreError(f"Transaction {txn_id} not found for user {user_id}")
        return txn
