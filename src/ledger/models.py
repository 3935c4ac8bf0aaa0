"""
Data models using Pydantic for the finance ledger application.
Provides validation and type checking for ledger data.
"""

from datetime import datetime, date
from enum import Enum
from typing import Optional, Dict, Any, Mapping
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
import re

CENTS = Decimal("0.01")
DEFAULT_CATEGORY_COLOR = "#6366f1"
DEFAULT_CARD_COLOR = "#818cf8"
HEX_COLOR = r'^#(?:[0-9a-fA-F]{3}){1,2}$'


def round_money(value: Decimal) -> Decimal:
    """Round a monetary value to 2 places using standard (half-up) rounding."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def coerce_amount(value: Any) -> Optional[Decimal]:
    """Parse an amount coming from a weakly typed source.

    Returns None instead of raising when the value is missing, not a number,
    not finite or negative.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


class TransactionType(str, Enum):
    """Ledger entry direction. Values are the stored/wire names."""

    INCOME = "receita"
    EXPENSE = "despesa"

    @classmethod
    def _missing_(cls, value):
        aliases = {"income": cls.INCOME, "expense": cls.EXPENSE}
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in aliases:
                return aliases[lowered]
            for member in cls:
                if member.value == lowered:
                    return member
        return None


class GoalStatus(str, Enum):
    ACTIVE = "ativa"
    COMPLETED = "concluida"
    CANCELLED = "cancelada"


class BankType(str, Enum):
    BANK = "banco"
    WALLET = "carteira"
    INVESTMENT = "investimento"
    OTHER = "outro"


class CardType(str, Enum):
    CREDIT = "credito"
    DEBIT = "debito"
    PREPAID = "pre_pago"


class RecurrenceFrequency(str, Enum):
    MONTHLY = "mensal"
    WEEKLY = "semanal"
    BIWEEKLY = "quinzenal"
    YEARLY = "anual"


class ExtractionResult(BaseModel):
    """Best-effort structured guess produced from one OCR run."""

    model_config = ConfigDict(frozen=True)

    raw_text: str = Field("", description="Text returned by the OCR engine")
    value: Optional[Decimal] = Field(None, ge=0, description="Largest monetary value found")
    description: str = Field(..., description="Short description of the purchase")
    type: TransactionType = Field(TransactionType.EXPENSE, description="Detected direction")
    confidence: float = Field(..., ge=0, le=1, description="Heuristic confidence score")

    def to_api_dict(self) -> Dict[str, Any]:
        """Render with the field names existing callers expect."""
        return {
            "texto": self.raw_text,
            "valor": float(self.value) if self.value is not None else None,
            "descricao": self.description,
            "tipo": self.type.value,
            "confianca": self.confidence,
        }


class LedgerRecord(BaseModel):
    """Minimal view of a transaction used by the period aggregator."""

    type: TransactionType
    amount: Optional[Decimal] = Field(None, description="None when the stored amount is unusable")
    occurred_on: date

    @field_validator('type', mode='before')
    @classmethod
    def parse_type(cls, v):
        return v if isinstance(v, TransactionType) else TransactionType(v)

    @field_validator('amount', mode='before')
    @classmethod
    def parse_amount(cls, v):
        """Coerce text/number amounts; unusable values become None."""
        return coerce_amount(v)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "LedgerRecord":
        """Build from a store row (tipo/valor/data) or English-keyed mapping."""
        def pick(*keys):
            for key in keys:
                if key in row:
                    return row[key]
            return None

        return cls(
            type=pick("type", "tipo"),
            amount=pick("amount", "valor"),
            occurred_on=pick("occurred_on", "occurredOn", "data", "date"),
        )


class PeriodSummary(BaseModel):
    """Totals for a bounded date range. Derived, never persisted."""

    total_income: Decimal = Field(Decimal("0.00"))
    total_expense: Decimal = Field(Decimal("0.00"))
    net_balance: Decimal = Field(Decimal("0.00"))

    def to_api_dict(self) -> Dict[str, float]:
        return {
            "receitas": float(self.total_income),
            "despesas": float(self.total_expense),
            "saldo": float(self.net_balance),
        }


class MonthSelector(BaseModel):
    """The {mes, ano} query pair."""

    mes: int = Field(..., ge=1, le=12)
    ano: int = Field(..., ge=1000, le=9999)


class Category(BaseModel):
    """User-defined transaction category."""

    id: Optional[int] = Field(None, description="Database primary key")
    user_id: int = Field(..., description="Owner")
    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: str = Field(DEFAULT_CATEGORY_COLOR)
    created_at: Optional[datetime] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Category name cannot be empty')
        return v.strip()

    @field_validator('color')
    @classmethod
    def validate_color(cls, v):
        """Validate hex color format."""
        if not re.match(HEX_COLOR, v):
            raise ValueError('Color must be a hex code (e.g., #6366f1)')
        return v


class CategoryCreate(BaseModel):
    """Model for creating new categories."""

    name: str = Field(..., min_length=1, max_length=100)
    type: TransactionType
    color: Optional[str] = Field(None)

    @field_validator('color')
    @classmethod
    def validate_color(cls, v):
        if v is not None and not re.match(HEX_COLOR, v):
            raise ValueError('Color must be a hex code (e.g., #6366f1)')
        return v


class CategoryUpdate(BaseModel):
    """Model for updating existing categories."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[TransactionType] = None
    color: Optional[str] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Category name cannot be empty')
        return v.strip() if v else v

    @field_validator('color')
    @classmethod
    def validate_color(cls, v):
        if v is not None and not re.match(HEX_COLOR, v):
            raise ValueError('Color must be a hex code (e.g., #6366f1)')
        return v


class Bank(BaseModel):
    """Bank account, wallet or investment account."""

    id: Optional[int] = Field(None, description="Database primary key")
    user_id: int
    name: str = Field(..., min_length=1, max_length=100)
    type: BankType = BankType.BANK
    initial_balance: Decimal = Field(Decimal("0"))
    current_balance: Decimal = Field(Decimal("0"))
    color: str = Field(DEFAULT_CATEGORY_COLOR)
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BankCreate(BaseModel):
    """Model for creating new banks. The current balance starts at the initial one."""

    name: str = Field(..., min_length=1, max_length=100)
    type: BankType = BankType.BANK
    initial_balance: Decimal = Field(Decimal("0"))
    color: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Bank name cannot be empty')
        return v.strip()

    @field_validator('color')
    @classmethod
    def validate_color(cls, v):
        if v is not None and not re.match(HEX_COLOR, v):
            raise ValueError('Color must be a hex code (e.g., #6366f1)')
        return v


class BankUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[BankType] = None
    current_balance: Optional[Decimal] = None
    color: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=500)


class Card(BaseModel):
    """Payment card issued by one of the user's banks."""

    id: Optional[int] = Field(None, description="Database primary key")
    user_id: int
    bank_id: int
    name: str = Field(..., min_length=1, max_length=100)
    type: CardType = CardType.CREDIT
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    closing_day: Optional[int] = Field(None, ge=1, le=31)
    due_day: Optional[int] = Field(None, ge=1, le=31)
    color: str = Field(DEFAULT_CARD_COLOR)
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class CardCreate(BaseModel):
    """Model for creating new cards."""

    bank_id: int
    name: str = Field(..., min_length=1, max_length=100)
    type: CardType = CardType.CREDIT
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    closing_day: Optional[int] = Field(None, ge=1, le=31)
    due_day: Optional[int] = Field(None, ge=1, le=31)
    color: Optional[str] = None
    active: bool = True

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Card name cannot be empty')
        return v.strip()

    @field_validator('color')
    @classmethod
    def validate_color(cls, v):
        if v is not None and not re.match(HEX_COLOR, v):
            raise ValueError('Color must be a hex code (e.g., #818cf8)')
        return v


class CardUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[CardType] = None
    credit_limit: Optional[Decimal] = Field(None, ge=0)
    closing_day: Optional[int] = Field(None, ge=1, le=31)
    due_day: Optional[int] = Field(None, ge=1, le=31)
    color: Optional[str] = None
    active: Optional[bool] = None


class Transaction(BaseModel):
    """Persisted ledger entry."""

    id: Optional[int] = Field(None, description="Database primary key")
    user_id: int = Field(..., description="Owner")
    category_id: Optional[int] = Field(None)
    type: TransactionType
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0, description="Transaction amount (must be positive)")
    occurred_on: date = Field(..., description="Date of the transaction")
    category_name: Optional[str] = Field(None, description="Joined from categories")
    category_color: Optional[str] = Field(None, description="Joined from categories")
    bank_id: Optional[int] = None
    card_id: Optional[int] = None
    bank_name: Optional[str] = Field(None, description="Joined from banks")
    card_name: Optional[str] = Field(None, description="Joined from cards")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_ledger_record(self) -> LedgerRecord:
        return LedgerRecord(type=self.type, amount=self.amount, occurred_on=self.occurred_on)


class TransactionCreate(BaseModel):
    """Model for creating new transactions."""

    type: TransactionType
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    occurred_on: date = Field(...)
    category_id: Optional[int] = Field(None)
    bank_id: Optional[int] = Field(None)
    card_id: Optional[int] = Field(None)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        """Descriptions are required and trimmed."""
        if not v or not v.strip():
            raise ValueError('Description cannot be empty')
        return v.strip()

    @field_validator('amount')
    @classmethod
    def validate_amount(cls, v):
        if v > Decimal('999999.99'):
            raise ValueError('Amount seems unreasonably large')
        return v


class TransactionUpdate(BaseModel):
    """Model for updating existing transactions."""

    type: Optional[TransactionType] = None
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0)
    occurred_on: Optional[date] = None
    category_id: Optional[int] = None
    bank_id: Optional[int] = None
    card_id: Optional[int] = None


class TransactionFilters(BaseModel):
    """Model for listing transactions."""

    period: Optional[MonthSelector] = Field(None, description="Restrict to one calendar month")
    type: Optional[TransactionType] = Field(None, description="Filter by direction")
    category_id: Optional[int] = Field(None, description="Filter by category")
    bank_id: Optional[int] = Field(None, description="Filter by bank")
    card_id: Optional[int] = Field(None, description="Filter by card")


class SavingsGoal(BaseModel):
    """Savings goal with its accumulated amount."""

    id: Optional[int] = Field(None, description="Database primary key")
    user_id: int
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(Decimal("0"), ge=0)
    start_date: date
    end_date: date
    category_id: Optional[int] = None
    status: GoalStatus = GoalStatus.ACTIVE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def progress(self) -> float:
        """Completion percentage; 0 when the target is 0."""
        if self.target_amount <= 0:
            return 0.0
        return float(self.current_amount / self.target_amount * 100)


class SavingsGoalCreate(BaseModel):
    """Model for creating new savings goals."""

    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    target_amount: Decimal = Field(..., gt=0)
    current_amount: Decimal = Field(Decimal("0"), ge=0)
    start_date: date
    end_date: date
    category_id: Optional[int] = None
    status: GoalStatus = GoalStatus.ACTIVE

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip()

    @model_validator(mode='after')
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError('End date must not be before start date')
        return self


class SavingsGoalUpdate(BaseModel):
    """Model for updating existing savings goals."""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=500)
    target_amount: Optional[Decimal] = Field(None, gt=0)
    current_amount: Optional[Decimal] = Field(None, ge=0)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    category_id: Optional[int] = None
    status: Optional[GoalStatus] = None

    @field_validator('title')
    @classmethod
    def validate_title(cls, v):
        if v is not None and not v.strip():
            raise ValueError('Title cannot be empty')
        return v.strip() if v else v

    @model_validator(mode='after')
    def validate_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError('End date must not be before start date')
        return self


class RecurringExpense(BaseModel):
    """Bill that repeats on a fixed day of the month."""

    id: Optional[int] = Field(None, description="Database primary key")
    user_id: int
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    due_day: int = Field(..., ge=1, le=31)
    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    category_id: Optional[int] = None
    bank_id: Optional[int] = None
    card_id: Optional[int] = None
    active: bool = True
    notes: Optional[str] = None
    category_name: Optional[str] = None
    bank_name: Optional[str] = None
    card_name: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RecurringExpenseCreate(BaseModel):
    """Model for creating new recurring expenses."""

    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., gt=0)
    due_day: int = Field(..., ge=1, le=31)
    frequency: RecurrenceFrequency = RecurrenceFrequency.MONTHLY
    category_id: Optional[int] = None
    bank_id: Optional[int] = None
    card_id: Optional[int] = None
    active: bool = True
    notes: Optional[str] = Field(None, max_length=500)

    @field_validator('description')
    @classmethod
    def validate_description(cls, v):
        if not v.strip():
            raise ValueError('Description cannot be empty')
        return v.strip()


class RecurringExpenseUpdate(BaseModel):
    description: Optional[str] = Field(None, min_length=1, max_length=500)
    amount: Optional[Decimal] = Field(None, gt=0)
    due_day: Optional[int] = Field(None, ge=1, le=31)
    frequency: Optional[RecurrenceFrequency] = None
    category_id: Optional[int] = None
    bank_id: Optional[int] = None
    card_id: Optional[int] = None
    active: Optional[bool] = None
    notes: Optional[str] = Field(None, max_length=500)


class UserProfile(BaseModel):
    """Per-user settings shown on the dashboard."""

    user_id: int
    name: Optional[str] = None
    fixed_monthly_income: Decimal = Field(Decimal("0"), ge=0)


class UserProfileUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    fixed_monthly_income: Optional[Decimal] = Field(None, ge=0)
