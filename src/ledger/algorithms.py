"""
Period aggregation for the finance ledger.
Computes monthly income/expense totals, balance and month-end projections.
"""

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import List, Dict, Any, Optional, Tuple, Iterable, Iterator, Mapping, Union
from collections import defaultdict

from pydantic import ValidationError

from .models import (
    LedgerRecord, PeriodSummary, MonthSelector, TransactionFilters,
    TransactionType, round_money,
)
from .database import DatabaseManager

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def compute_date_range(month: int, year: int) -> Tuple[date, date]:
    """Return the first and last calendar day of a month.

    The last day is the day before the first of the following month, so
    month lengths and leap years come from the calendar itself.

    Raises:
        ValueError: If month is not in 1..12
    """
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be between 1 and 12, got {month}")

    start = date(year, month, 1)
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return start, next_month - timedelta(days=1)


def clamp_due_date(due_day: int, month: int, year: int) -> date:
    """Date a monthly bill falls due, moved back to the last day of short months.

    A bill due on the 31st is due on 29 February in a leap year.
    """
    if not 1 <= due_day <= 31:
        raise ValueError(f"Due day must be between 1 and 31, got {due_day}")
    _, end = compute_date_range(month, year)
    return date(year, month, min(due_day, end.day))


def _as_records(items: Iterable[Union[LedgerRecord, Mapping[str, Any]]]) -> Iterator[LedgerRecord]:
    """Yield LedgerRecords, converting raw rows and dropping unreadable ones."""
    for item in items:
        if isinstance(item, LedgerRecord):
            yield item
            continue
        try:
            yield LedgerRecord.from_row(item)
        except (ValidationError, TypeError) as e:
            logger.debug(f"Skipping unreadable ledger row {item!r}: {e}")


def filter_by_range(records: Iterable[Union[LedgerRecord, Mapping[str, Any]]],
                    start_date: Optional[date], end_date: Optional[date]) -> List[LedgerRecord]:
    """Keep records with start_date <= occurred_on <= end_date.

    Without both bounds every record is returned.
    """
    records = list(_as_records(records))
    if start_date is None or end_date is None:
        return records
    return [r for r in records if start_date <= r.occurred_on <= end_date]


def summarize(records: Iterable[Union[LedgerRecord, Mapping[str, Any]]]) -> PeriodSummary:
    """Total income and expense for a set of records.

    Records that cannot be read (unknown type, unusable amount) contribute
    zero instead of failing the whole aggregation.

    Args:
        records: LedgerRecord objects or raw store rows

    Returns:
        PeriodSummary rounded to 2 decimal places
    """
    totals = {TransactionType.INCOME: ZERO, TransactionType.EXPENSE: ZERO}
    skipped = 0

    for record in _as_records(records):
        if record.amount is None:
            skipped += 1
            logger.debug(f"Skipping ledger record with unusable amount: {record!r}")
            continue

        totals[record.type] += record.amount

    if skipped:
        logger.info(f"Skipped {skipped} malformed ledger record(s) during aggregation")

    total_income = round_money(totals[TransactionType.INCOME])
    total_expense = round_money(totals[TransactionType.EXPENSE])
    return PeriodSummary(
        total_income=total_income,
        total_expense=total_expense,
        net_balance=total_income - total_expense,
    )


def project_month_end(summary: PeriodSummary, today: Union[date, int], days_in_month: int) -> Decimal:
    """Extrapolate the month's total expense from the daily average so far.

    Args:
        summary: Totals for the month to date
        today: Current date, or its day of the month
        days_in_month: Length of the month being projected

    Returns:
        Projected expense for the full month
    """
    day_of_month = today.day if isinstance(today, date) else int(today)
    expense = summary.total_expense
    if day_of_month <= 0:
        return expense

    daily_average = expense / day_of_month
    remaining_days = max(days_in_month - day_of_month, 0)
    return round_money(expense + daily_average * remaining_days)


def spending_ratio(summary: PeriodSummary) -> Decimal:
    """Expense as a percentage of income (0 when there is no income)."""
    if summary.total_income <= 0:
        return Decimal("0.0")
    ratio = summary.total_expense / summary.total_income * 100
    return ratio.quantize(Decimal("0.1"))


def fixed_income_difference(summary: PeriodSummary, fixed_income: Decimal) -> Optional[Decimal]:
    """Recorded income minus the expected fixed income.

    Returns None when no fixed income is configured.
    """
    if fixed_income is None or fixed_income <= 0:
        return None
    return round_money(summary.total_income - fixed_income)


class AnalyticsEngine:
    """Aggregates a user's stored transactions."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize analytics engine.

        Args:
            db_manager: Database manager instance
        """
        self.db_manager = db_manager
        self.logger = logger

    def period_summary(self, user_id: int, selector: Optional[MonthSelector] = None) -> PeriodSummary:
        """Summarize a user's records for one month, or all of them.

        Raises:
            SourceUnavailable: If the store cannot be read
        """
        start_date = end_date = None
        if selector is not None:
            start_date, end_date = compute_date_range(selector.mes, selector.ano)

        rows = self.db_manager.fetch_ledger_records(user_id, start_date, end_date)
        summary = summarize(rows)

        period = f"{selector.mes:02d}/{selector.ano}" if selector else "all time"
        self.logger.info(f"Summary for user {user_id} ({period}): {summary.to_api_dict()}")
        return summary

    def monthly_overview(self, user_id: int, selector: MonthSelector,
                         today: Optional[date] = None) -> Dict[str, Any]:
        """Dashboard figures for one month.

        The projection only extrapolates inside the current month; other
        months report their recorded expense. The fixed income difference
        is None unless the user set a fixed monthly income.
        """
        today = today or date.today()
        summary = self.period_summary(user_id, selector)
        start_date, end_date = compute_date_range(selector.mes, selector.ano)
        days_in_month = end_date.day

        if start_date <= today <= end_date:
            projection = project_month_end(summary, today, days_in_month)
        else:
            projection = summary.total_expense

        fixed_income = self.db_manager.get_profile(user_id).fixed_monthly_income

        return {
            "summary": summary,
            "projection": projection,
            "projected_balance": summary.total_income - projection,
            "spending_ratio": spending_ratio(summary),
            "days_in_month": days_in_month,
            "fixed_income": fixed_income,
            "fixed_income_difference": fixed_income_difference(summary, fixed_income),
        }

    def category_breakdown(self, user_id: int, selector: Optional[MonthSelector] = None,
                           type: TransactionType = TransactionType.EXPENSE) -> Dict[str, Decimal]:
        """Totals per category name, largest first."""
        transactions = self.db_manager.list_transactions(
            user_id, TransactionFilters(period=selector, type=type)
        )

        totals = defaultdict(Decimal)
        for transaction in transactions:
            totals[transaction.category_name or "Sem categoria"] += transaction.amount

        return dict(sorted(totals.items(), key=lambda x: x[1], reverse=True))
