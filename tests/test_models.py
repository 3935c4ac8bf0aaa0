"""
Unit tests for data models in the finance ledger application.
Tests validation, coercion and serialization.
"""

import pytest
from datetime import date
from decimal import Decimal
from pydantic import ValidationError

from ledger.models import (
    coerce_amount, round_money, TransactionType, GoalStatus,
    ExtractionResult, LedgerRecord, PeriodSummary, MonthSelector,
    Category, CategoryCreate, TransactionCreate, TransactionUpdate,
    SavingsGoal, SavingsGoalCreate, SavingsGoalUpdate, CategoryUpdate,
    BankCreate, CardCreate, RecurringExpenseCreate, RecurrenceFrequency,
    UserProfileUpdate,
)


class TestAmountHelpers:
    """Test cases for amount coercion and rounding."""

    def test_coerce_amount_valid(self):
        assert coerce_amount("100") == Decimal("100")
        assert coerce_amount(" 12.50 ") == Decimal("12.50")
        assert coerce_amount(500) == Decimal("500")
        assert coerce_amount(12.5) == Decimal("12.5")
        assert coerce_amount(Decimal("0")) == Decimal("0")

    def test_coerce_amount_invalid(self):
        assert coerce_amount(None) is None
        assert coerce_amount("") is None
        assert coerce_amount("abc") is None
        assert coerce_amount("-5") is None
        assert coerce_amount(True) is None
        assert coerce_amount(float("nan")) is None
        assert coerce_amount(float("inf")) is None
        assert coerce_amount([1, 2]) is None

    def test_round_money_half_up(self):
        assert round_money(Decimal("0.005")) == Decimal("0.01")
        assert round_money(Decimal("2.675")) == Decimal("2.68")
        assert round_money(Decimal("10")) == Decimal("10.00")


class TestTransactionType:
    """Test cases for TransactionType enum."""

    def test_stored_values(self):
        assert TransactionType("receita") == TransactionType.INCOME
        assert TransactionType("despesa") == TransactionType.EXPENSE

    def test_aliases(self):
        assert TransactionType("income") == TransactionType.INCOME
        assert TransactionType("EXPENSE") == TransactionType.EXPENSE
        assert TransactionType(" Despesa ") == TransactionType.EXPENSE

    def test_unknown_value(self):
        with pytest.raises(ValueError):
            TransactionType("transfer")


class TestExtractionResult:
    """Test cases for ExtractionResult model."""

    def test_to_api_dict(self):
        result = ExtractionResult(
            raw_text="Total R$ 10,00",
            value=Decimal("10.00"),
            description="Compra identificada",
            type=TransactionType.EXPENSE,
            confidence=0.8,
        )

        assert result.to_api_dict() == {
            "texto": "Total R$ 10,00",
            "valor": 10.0,
            "descricao": "Compra identificada",
            "tipo": "despesa",
            "confianca": 0.8,
        }

    def test_to_api_dict_without_value(self):
        result = ExtractionResult(description="Compra identificada", confidence=0.5)
        assert result.to_api_dict()["valor"] is None
        assert result.type == TransactionType.EXPENSE

    def test_confidence_bounds(self):
        with pytest.raises(ValidationError):
            ExtractionResult(description="x", confidence=1.5)

    def test_frozen(self):
        result = ExtractionResult(description="x", confidence=0.5)
        with pytest.raises(ValidationError):
            result.value = Decimal("1")


class TestLedgerRecord:
    """Test cases for LedgerRecord model."""

    def test_from_row_portuguese_keys(self):
        record = LedgerRecord.from_row({"tipo": "receita", "valor": "100", "data": "2024-03-01"})

        assert record.type == TransactionType.INCOME
        assert record.amount == Decimal("100")
        assert record.occurred_on == date(2024, 3, 1)

    def test_from_row_english_keys(self):
        record = LedgerRecord.from_row({"type": "expense", "amount": 50, "occurredOn": "2024-02-28"})

        assert record.type == TransactionType.EXPENSE
        assert record.amount == Decimal("50")
        assert record.occurred_on == date(2024, 2, 28)

    def test_unusable_amount_becomes_none(self):
        record = LedgerRecord(type="despesa", amount="abc", occurred_on=date(2024, 3, 1))
        assert record.amount is None

    def test_unknown_type_rejected(self):
        with pytest.raises(ValidationError):
            LedgerRecord.from_row({"type": "other", "amount": 1, "occurred_on": "2024-03-01"})


class TestPeriodSummary:
    """Test cases for PeriodSummary model."""

    def test_defaults(self):
        summary = PeriodSummary()
        assert summary.total_income == Decimal("0.00")
        assert summary.net_balance == Decimal("0.00")

    def test_to_api_dict(self):
        summary = PeriodSummary(
            total_income=Decimal("500.00"),
            total_expense=Decimal("100.00"),
            net_balance=Decimal("400.00"),
        )
        assert summary.to_api_dict() == {"receitas": 500.0, "despesas": 100.0, "saldo": 400.0}


class TestMonthSelector:
    """Test cases for MonthSelector model."""

    def test_valid(self):
        selector = MonthSelector(mes="3", ano="2024")
        assert selector.mes == 3
        assert selector.ano == 2024

    @pytest.mark.parametrize("mes,ano", [(0, 2024), (13, 2024), (1, 999), (1, 10000)])
    def test_invalid(self, mes, ano):
        with pytest.raises(ValidationError):
            MonthSelector(mes=mes, ano=ano)


class TestCategoryModels:
    """Test cases for category models."""

    def test_category_name_trimmed(self):
        category = Category(user_id=1, name="  Mercado ", type="despesa")
        assert category.name == "Mercado"
        assert category.color == "#6366f1"

    def test_category_invalid_color(self):
        with pytest.raises(ValidationError):
            Category(user_id=1, name="Mercado", type="despesa", color="blue")

    def test_category_create_optional_color(self):
        assert CategoryCreate(name="Salário", type="receita").color is None
        with pytest.raises(ValidationError):
            CategoryCreate(name="Salário", type="receita", color="#12")


class TestTransactionModels:
    """Test cases for transaction models."""

    def test_transaction_create_valid(self):
        transaction = TransactionCreate(
            type="despesa",
            description="  Almoço  ",
            amount=Decimal("35.90"),
            occurred_on=date(2024, 3, 15),
        )

        assert transaction.description == "Almoço"
        assert transaction.type == TransactionType.EXPENSE
        assert transaction.category_id is None

    def test_transaction_create_blank_description(self):
        with pytest.raises(ValidationError):
            TransactionCreate(type="despesa", description="   ", amount=1, occurred_on=date(2024, 3, 15))

    @pytest.mark.parametrize("amount", ["0", "-10", "1000000"])
    def test_transaction_create_invalid_amount(self, amount):
        with pytest.raises(ValidationError):
            TransactionCreate(
                type="despesa", description="Teste", amount=Decimal(amount), occurred_on=date(2024, 3, 15),
            )

    def test_transaction_update_partial(self):
        updates = TransactionUpdate(amount=Decimal("20.00"))
        assert updates.model_dump(exclude_unset=True) == {"amount": Decimal("20.00")}


class TestSavingsGoalModels:
    """Test cases for savings goal models."""

    def test_progress(self):
        goal = SavingsGoal(
            user_id=1,
            title="Viagem",
            target_amount=Decimal("1000"),
            current_amount=Decimal("250"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
        )
        assert goal.progress == 25.0
        assert goal.status == GoalStatus.ACTIVE

    def test_end_before_start(self):
        with pytest.raises(ValidationError):
            SavingsGoalCreate(
                title="Viagem",
                target_amount=Decimal("1000"),
                start_date=date(2024, 6, 1),
                end_date=date(2024, 1, 1),
            )

    def test_blank_title(self):
        with pytest.raises(ValidationError):
            SavingsGoalCreate(
                title="  ",
                target_amount=Decimal("1000"),
                start_date=date(2024, 1, 1),
                end_date=date(2024, 12, 31),
            )

    def test_update_partial_status(self):
        updates = SavingsGoalUpdate(status="cancelada")
        assert updates.model_dump(exclude_unset=True) == {"status": GoalStatus.CANCELLED}

    def test_update_rejects_inverted_dates(self):
        with pytest.raises(ValidationError):
            SavingsGoalUpdate(start_date=date(2024, 6, 1), end_date=date(2024, 1, 1))


class TestCategoryUpdate:

    def test_strips_name(self):
        assert CategoryUpdate(name="  Lazer ").name == "Lazer"

    def test_invalid_color(self):
        with pytest.raises(ValidationError):
            CategoryUpdate(color="azul")

    def test_unset_fields_not_dumped(self):
        assert CategoryUpdate(color="#fff").model_dump(exclude_unset=True) == {"color": "#fff"}


class TestAccountModels:

    def test_bank_defaults(self):
        bank = BankCreate(name=" Nubank ")
        assert bank.name == "Nubank"
        assert bank.type.value == "banco"
        assert bank.initial_balance == Decimal("0")

    def test_card_requires_bank(self):
        with pytest.raises(ValidationError):
            CardCreate(name="Platinum")

    def test_card_day_range(self):
        with pytest.raises(ValidationError):
            CardCreate(bank_id=1, name="Platinum", due_day=32)

    def test_recurring_due_day_range(self):
        with pytest.raises(ValidationError):
            RecurringExpenseCreate(description="Aluguel", amount=Decimal("1200"), due_day=0)
        with pytest.raises(ValidationError):
            RecurringExpenseCreate(description="Aluguel", amount=Decimal("1200"), due_day=32)

    def test_recurring_defaults(self):
        expense = RecurringExpenseCreate(description=" Internet ", amount=Decimal("99.90"), due_day=5)
        assert expense.description == "Internet"
        assert expense.frequency == RecurrenceFrequency.MONTHLY
        assert expense.active is True

    def test_fixed_income_not_negative(self):
        with pytest.raises(ValidationError):
            UserProfileUpdate(fixed_monthly_income=Decimal("-1"))
        assert UserProfileUpdate(fixed_monthly_income=Decimal("0")).fixed_monthly_income == Decimal("0")

    def test_profile_name_min_length(self):
        with pytest.raises(ValidationError):
            UserProfileUpdate(name="A")
