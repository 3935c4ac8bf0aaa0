"""
Core functionality modules for the finance ledger.
"""

from .models import (
    TransactionType,
    ExtractionResult,
    LedgerRecord,
    PeriodSummary,
    MonthSelector,
    Category,
    CategoryCreate,
    CategoryUpdate,
    Bank,
    BankCreate,
    Card,
    CardCreate,
    Transaction,
    TransactionCreate,
    TransactionUpdate,
    TransactionFilters,
    SavingsGoal,
    SavingsGoalCreate,
    SavingsGoalUpdate,
    GoalStatus,
    RecurringExpense,
    RecurringExpenseCreate,
    UserProfile,
)
from .database import DatabaseManager
from .parsing import ReceiptExtractor
from .algorithms import (
    AnalyticsEngine,
    compute_date_range,
    clamp_due_date,
    filter_by_range,
    summarize,
    project_month_end,
    spending_ratio,
    fixed_income_difference,
)
from .recurring import RecurringExpenseManager
from .config import AppSettings
from .exceptions import LedgerError, ExtractionFailure, SourceUnavailable

__all__ = [
    'TransactionType',
    'ExtractionResult',
    'LedgerRecord',
    'PeriodSummary',
    'MonthSelector',
    'Category',
    'CategoryCreate',
    'CategoryUpdate',
    'Bank',
    'BankCreate',
    'Card',
    'CardCreate',
    'Transaction',
    'TransactionCreate',
    'TransactionUpdate',
    'TransactionFilters',
    'SavingsGoal',
    'SavingsGoalCreate',
    'SavingsGoalUpdate',
    'GoalStatus',
    'RecurringExpense',
    'RecurringExpenseCreate',
    'UserProfile',
    'DatabaseManager',
    'ReceiptExtractor',
    'AnalyticsEngine',
    'RecurringExpenseManager',
    'compute_date_range',
    'clamp_due_date',
    'filter_by_range',
    'summarize',
    'project_month_end',
    'spending_ratio',
    'fixed_income_difference',
    'AppSettings',
    'LedgerError',
    'ExtractionFailure',
    'SourceUnavailable',
]
