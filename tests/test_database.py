"""
Unit tests for database operations in the finance ledger application.
Tests CRUD operations, ownership checks and data integrity.
"""

import pytest
import tempfile
import os
from datetime import date
from decimal import Decimal

from ledger.database import DatabaseManager
from ledger.exceptions import (
    RecordNotFoundError, DuplicateCategoryError, CategoryInUseError, SourceUnavailable,
    RecordInUseError, ReferenceMismatchError,
)
from ledger.models import (
    BankCreate, BankUpdate, CardCreate, CardUpdate, CategoryCreate, CategoryUpdate,
    ExtractionResult, GoalStatus, MonthSelector, SavingsGoalCreate, SavingsGoalUpdate,
    TransactionCreate, TransactionFilters, TransactionType, TransactionUpdate,
    UserProfileUpdate,
)


class TestDatabaseManager:
    """Test cases for DatabaseManager class."""

    @pytest.fixture
    def temp_db(self):
        """Create temporary database for testing."""
        temp_file = tempfile.NamedTemporaryFile(delete=False, suffix='.db')
        temp_file.close()

        db_manager = DatabaseManager(temp_file.name)
        db_manager.initialize_database()

        yield db_manager

        os.unlink(temp_file.name)

    @pytest.fixture
    def sample_transaction_data(self):
        """Sample transaction data for testing."""
        return TransactionCreate(
            type=TransactionType.EXPENSE,
            description="Supermercado",
            amount=Decimal("125.40"),
            occurred_on=date(2024, 3, 15),
        )

    @pytest.fixture
    def sample_goal_data(self):
        return SavingsGoalCreate(
            title="Reserva de emergência",
            target_amount=Decimal("1000.00"),
            start_date=date(2024, 1, 1),
            end_date=date(2024, 12, 31),
        )

    def test_database_initialization(self, temp_db):
        """Test database initialization creates proper schema."""
        with temp_db.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table'")
            tables = {row[0] for row in cursor.fetchall()}

            assert {
                'categories', 'transactions', 'savings_goals', 'banks', 'cards',
                'recurring_expenses', 'user_profiles',
            } <= tables

            cursor.execute("SELECT name FROM sqlite_master WHERE type='index' AND tbl_name='transactions'")
            assert len(cursor.fetchall()) > 0

    def test_initialization_is_repeatable(self, temp_db):
        temp_db.initialize_database()

    def test_add_transaction(self, temp_db, sample_transaction_data):
        transaction_id = temp_db.add_transaction(1, sample_transaction_data)

        assert isinstance(transaction_id, int)
        assert transaction_id > 0

    def test_get_transaction(self, temp_db, sample_transaction_data):
        category_id = temp_db.add_category(1, CategoryCreate(name="Mercado", type="despesa", color="#22c55e"))
        sample_transaction_data.category_id = category_id
        transaction_id = temp_db.add_transaction(1, sample_transaction_data)

        transaction = temp_db.get_transaction(transaction_id, 1)

        assert transaction is not None
        assert transaction.description == "Supermercado"
        assert transaction.amount == Decimal("125.40")
        assert transaction.occurred_on == date(2024, 3, 15)
        assert transaction.type == TransactionType.EXPENSE
        assert transaction.category_name == "Mercado"
        assert transaction.category_color == "#22c55e"

    def test_get_transaction_other_user(self, temp_db, sample_transaction_data):
        transaction_id = temp_db.add_transaction(1, sample_transaction_data)

        assert temp_db.get_transaction(transaction_id, 2) is None
        assert temp_db.get_transaction(99999, 1) is None

    def test_add_transaction_foreign_category(self, temp_db, sample_transaction_data):
        category_id = temp_db.add_category(2, CategoryCreate(name="Mercado", type="despesa"))
        sample_transaction_data.category_id = category_id

        with pytest.raises(RecordNotFoundError):
            temp_db.add_transaction(1, sample_transaction_data)

    def test_list_transactions_filters(self, temp_db):
        category_id = temp_db.add_category(1, CategoryCreate(name="Mercado", type="despesa"))
        entries = [
            ("despesa", "Feira", date(2024, 3, 2), category_id),
            ("despesa", "Luz", date(2024, 3, 20), None),
            ("receita", "Salário", date(2024, 3, 5), None),
            ("despesa", "Mercado fevereiro", date(2024, 2, 28), category_id),
        ]
        for type_, description, occurred_on, cat in entries:
            temp_db.add_transaction(1, TransactionCreate(
                type=type_, description=description, amount=Decimal("10.00"),
                occurred_on=occurred_on, category_id=cat,
            ))

        march = MonthSelector(mes=3, ano=2024)

        all_march = temp_db.list_transactions(1, TransactionFilters(period=march))
        assert [t.description for t in all_march] == ["Luz", "Salário", "Feira"]

        expenses = temp_db.list_transactions(1, TransactionFilters(period=march, type=TransactionType.EXPENSE))
        assert {t.description for t in expenses} == {"Luz", "Feira"}

        by_category = temp_db.list_transactions(1, TransactionFilters(category_id=category_id))
        assert {t.description for t in by_category} == {"Feira", "Mercado fevereiro"}

        assert len(temp_db.list_transactions(1, limit=2)) == 2
        assert temp_db.list_transactions(2) == []

    def test_update_transaction(self, temp_db, sample_transaction_data):
        transaction_id = temp_db.add_transaction(1, sample_transaction_data)

        updates = TransactionUpdate(amount=Decimal("99.90"), type=TransactionType.INCOME)
        assert temp_db.update_transaction(transaction_id, 1, updates) is True

        transaction = temp_db.get_transaction(transaction_id, 1)
        assert transaction.amount == Decimal("99.90")
        assert transaction.type == TransactionType.INCOME
        assert transaction.description == "Supermercado"

    def test_update_transaction_not_found(self, temp_db):
        updates = TransactionUpdate(description="Nada")
        assert temp_db.update_transaction(99999, 1, updates) is False

    def test_delete_transaction(self, temp_db, sample_transaction_data):
        transaction_id = temp_db.add_transaction(1, sample_transaction_data)

        assert temp_db.delete_transaction(transaction_id, 2) is False
        assert temp_db.delete_transaction(transaction_id, 1) is True
        assert temp_db.get_transaction(transaction_id, 1) is None

    def test_fetch_ledger_records(self, temp_db, sample_transaction_data):
        temp_db.add_transaction(1, sample_transaction_data)

        rows = temp_db.fetch_ledger_records(1, date(2024, 3, 1), date(2024, 3, 31))
        assert len(rows) == 1
        assert rows[0]["type"] == "despesa"
        assert rows[0]["occurred_on"] == "2024-03-15"

        assert temp_db.fetch_ledger_records(1, date(2024, 4, 1), date(2024, 4, 30)) == []

    def test_fetch_ledger_records_unavailable(self, tmp_path):
        db_manager = DatabaseManager(str(tmp_path / "missing" / "ledger.db"))

        with pytest.raises(SourceUnavailable):
            db_manager.fetch_ledger_records(1)

    def test_duplicate_category(self, temp_db):
        temp_db.add_category(1, CategoryCreate(name="Mercado", type="despesa"))

        with pytest.raises(DuplicateCategoryError):
            temp_db.add_category(1, CategoryCreate(name="Mercado", type="despesa"))

        # Same name is fine for another type or another user
        temp_db.add_category(1, CategoryCreate(name="Mercado", type="receita"))
        temp_db.add_category(2, CategoryCreate(name="Mercado", type="despesa"))

    def test_list_and_default_categories(self, temp_db):
        first = temp_db.add_category(1, CategoryCreate(name="Transporte", type="despesa"))
        temp_db.add_category(1, CategoryCreate(name="Alimentação", type="despesa"))
        temp_db.add_category(1, CategoryCreate(name="Salário", type="receita"))

        names = [c.name for c in temp_db.list_categories(1, TransactionType.EXPENSE)]
        assert names == ["Alimentação", "Transporte"]
        assert len(temp_db.list_categories(1)) == 3

        assert temp_db.find_default_category(1, TransactionType.EXPENSE).id == first
        assert temp_db.find_default_category(2, TransactionType.EXPENSE) is None

    def test_delete_category(self, temp_db, sample_transaction_data):
        unused = temp_db.add_category(1, CategoryCreate(name="Lazer", type="despesa"))
        used = temp_db.add_category(1, CategoryCreate(name="Mercado", type="despesa"))
        sample_transaction_data.category_id = used
        temp_db.add_transaction(1, sample_transaction_data)

        temp_db.delete_category(unused, 1)
        assert [c.id for c in temp_db.list_categories(1)] == [used]

        with pytest.raises(CategoryInUseError):
            temp_db.delete_category(used, 1)

        with pytest.raises(RecordNotFoundError):
            temp_db.delete_category(used, 2)

    def test_create_transaction_from_extraction(self, temp_db):
        category_id = temp_db.add_category(1, CategoryCreate(name="Compras", type="despesa"))
        result = ExtractionResult(
            raw_text="Supermercado\nTotal R$ 45,90",
            value=Decimal("45.90"),
            description="Supermercado",
            type=TransactionType.EXPENSE,
            confidence=0.8,
        )

        transaction = temp_db.create_transaction_from_extraction(1, result)

        assert transaction is not None
        assert transaction.amount == Decimal("45.90")
        assert transaction.category_id == category_id
        assert transaction.occurred_on == date.today()

    def test_create_transaction_from_extraction_without_value(self, temp_db):
        result = ExtractionResult(description="Compra identificada", confidence=0.5)

        assert temp_db.create_transaction_from_extraction(1, result) is None
        assert temp_db.list_transactions(1) == []

    def test_goal_lifecycle(self, temp_db, sample_goal_data):
        goal_id = temp_db.add_goal(1, sample_goal_data)

        goal = temp_db.contribute_to_goal(goal_id, 1, Decimal("400.00"))
        assert goal.current_amount == Decimal("400.00")
        assert goal.status == GoalStatus.ACTIVE
        assert goal.progress == 40.0

        goal = temp_db.contribute_to_goal(goal_id, 1, Decimal("600.00"))
        assert goal.status == GoalStatus.COMPLETED

        assert [g.id for g in temp_db.list_goals(1, GoalStatus.COMPLETED)] == [goal_id]
        assert temp_db.list_goals(1, GoalStatus.ACTIVE) == []

    def test_contribute_invalid(self, temp_db, sample_goal_data):
        goal_id = temp_db.add_goal(1, sample_goal_data)

        with pytest.raises(ValueError):
            temp_db.contribute_to_goal(goal_id, 1, Decimal("0"))

        with pytest.raises(RecordNotFoundError):
            temp_db.contribute_to_goal(goal_id, 2, Decimal("10"))

    def test_delete_goal(self, temp_db, sample_goal_data):
        goal_id = temp_db.add_goal(1, sample_goal_data)

        assert temp_db.delete_goal(goal_id, 2) is False
        assert temp_db.delete_goal(goal_id, 1) is True
        assert temp_db.get_goal(goal_id, 1) is None

    def test_list_transactions_unavailable(self, tmp_path):
        """Test an unreachable store is reported, not raised as a sqlite error."""
        db_manager = DatabaseManager(str(tmp_path / "missing" / "ledger.db"))

        with pytest.raises(SourceUnavailable):
            db_manager.list_transactions(1)

        with pytest.raises(SourceUnavailable):
            db_manager.get_profile(1)

    def test_update_category(self, temp_db):
        category_id = temp_db.add_category(1, CategoryCreate(name="Mercado", type="despesa"))

        updates = CategoryUpdate(name="  Supermercado ", color="#22c55e")
        assert temp_db.update_category(category_id, 1, updates) is True

        category = temp_db.get_category(category_id, 1)
        assert category.name == "Supermercado"
        assert category.color == "#22c55e"
        assert category.type == TransactionType.EXPENSE

    def test_update_category_keeps_unset_fields(self, temp_db):
        category_id = temp_db.add_category(1, CategoryCreate(name="Lazer", type="despesa", color="#f97316"))

        assert temp_db.update_category(category_id, 1, CategoryUpdate(name="Passeios")) is True
        assert temp_db.get_category(category_id, 1).color == "#f97316"
        assert temp_db.update_category(category_id, 1, CategoryUpdate()) is True

    def test_update_category_duplicate_and_ownership(self, temp_db):
        temp_db.add_category(1, CategoryCreate(name="Mercado", type="despesa"))
        other = temp_db.add_category(1, CategoryCreate(name="Feira", type="despesa"))

        with pytest.raises(DuplicateCategoryError):
            temp_db.update_category(other, 1, CategoryUpdate(name="Mercado"))

        # Renaming to its own name is not a conflict
        assert temp_db.update_category(other, 1, CategoryUpdate(name="Feira")) is True
        assert temp_db.update_category(other, 2, CategoryUpdate(name="Outra")) is False
        assert temp_db.get_category(other, 1).name == "Feira"

    def test_update_goal(self, temp_db, sample_goal_data):
        goal_id = temp_db.add_goal(1, sample_goal_data)

        updates = SavingsGoalUpdate(title="Viagem", target_amount=Decimal("2500.00"))
        assert temp_db.update_goal(goal_id, 1, updates) is True

        goal = temp_db.get_goal(goal_id, 1)
        assert goal.title == "Viagem"
        assert goal.target_amount == Decimal("2500.00")
        assert goal.end_date == date(2024, 12, 31)
        assert goal.status == GoalStatus.ACTIVE

    def test_update_goal_status(self, temp_db, sample_goal_data):
        goal_id = temp_db.add_goal(1, sample_goal_data)

        assert temp_db.update_goal(goal_id, 1, SavingsGoalUpdate(status=GoalStatus.CANCELLED)) is True
        assert temp_db.get_goal(goal_id, 1).status == GoalStatus.CANCELLED
        assert [g.id for g in temp_db.list_goals(1, GoalStatus.CANCELLED)] == [goal_id]

        # Reopening a cancelled goal
        temp_db.update_goal(goal_id, 1, SavingsGoalUpdate(status="ativa"))
        assert temp_db.get_goal(goal_id, 1).status == GoalStatus.ACTIVE

        assert temp_db.update_goal(goal_id, 2, SavingsGoalUpdate(status=GoalStatus.CANCELLED)) is False

    def test_update_goal_end_before_stored_start(self, temp_db, sample_goal_data):
        goal_id = temp_db.add_goal(1, sample_goal_data)

        with pytest.raises(ValueError):
            temp_db.update_goal(goal_id, 1, SavingsGoalUpdate(end_date=date(2023, 12, 31)))

        assert temp_db.get_goal(goal_id, 1).end_date == date(2024, 12, 31)

    def test_delete_goal_any_status(self, temp_db, sample_goal_data):
        completed = temp_db.add_goal(1, sample_goal_data)
        temp_db.contribute_to_goal(completed, 1, Decimal("1000.00"))
        cancelled = temp_db.add_goal(1, sample_goal_data)
        temp_db.update_goal(cancelled, 1, SavingsGoalUpdate(status=GoalStatus.CANCELLED))

        assert temp_db.delete_goal(completed, 1) is True
        assert temp_db.delete_goal(cancelled, 1) is True
        assert temp_db.list_goals(1) == []

    def test_profile_defaults_and_update(self, temp_db):
        profile = temp_db.get_profile(1)
        assert profile.fixed_monthly_income == Decimal("0")
        assert profile.name is None

        profile = temp_db.update_profile(1, UserProfileUpdate(fixed_monthly_income=Decimal("3500.00")))
        assert profile.fixed_monthly_income == Decimal("3500.00")

        profile = temp_db.update_profile(1, UserProfileUpdate(name=" Ana "))
        assert profile.name == "Ana"
        assert profile.fixed_monthly_income == Decimal("3500.00")

        assert temp_db.get_profile(2).fixed_monthly_income == Decimal("0")

    def test_bank_crud(self, temp_db):
        bank_id = temp_db.add_bank(1, BankCreate(name="Nubank", initial_balance=Decimal("150.00")))

        bank = temp_db.get_bank(bank_id, 1)
        assert bank.initial_balance == Decimal("150.00")
        assert bank.current_balance == Decimal("150.00")
        assert temp_db.get_bank(bank_id, 2) is None

        assert temp_db.update_bank(bank_id, 1, BankUpdate(current_balance=Decimal("90.50"))) is True
        assert temp_db.get_bank(bank_id, 1).current_balance == Decimal("90.50")
        assert [b.name for b in temp_db.list_banks(1)] == ["Nubank"]

        temp_db.delete_bank(bank_id, 1)
        assert temp_db.list_banks(1) == []

    def test_delete_bank_with_cards(self, temp_db):
        bank_id = temp_db.add_bank(1, BankCreate(name="Itaú"))
        card_id = temp_db.add_card(1, CardCreate(bank_id=bank_id, name="Platinum"))

        with pytest.raises(RecordInUseError):
            temp_db.delete_bank(bank_id, 1)

        temp_db.delete_card(card_id, 1)
        temp_db.delete_bank(bank_id, 1)

        with pytest.raises(RecordNotFoundError):
            temp_db.delete_bank(bank_id, 1)

    def test_card_crud(self, temp_db):
        bank_id = temp_db.add_bank(1, BankCreate(name="Itaú"))
        card_id = temp_db.add_card(1, CardCreate(
            bank_id=bank_id, name="Platinum", credit_limit=Decimal("5000.00"), due_day=10,
        ))

        card = temp_db.get_card(card_id, 1)
        assert card.bank_id == bank_id
        assert card.credit_limit == Decimal("5000.00")
        assert card.color == "#818cf8"
        assert card.active is True

        temp_db.update_card(card_id, 1, CardUpdate(active=False))
        assert temp_db.list_cards(1, active=True) == []
        assert [c.id for c in temp_db.list_cards(1, bank_id=bank_id)] == [card_id]

    def test_add_card_foreign_bank(self, temp_db):
        bank_id = temp_db.add_bank(2, BankCreate(name="Itaú"))

        with pytest.raises(RecordNotFoundError):
            temp_db.add_card(1, CardCreate(bank_id=bank_id, name="Platinum"))

    def test_transaction_with_bank_and_card(self, temp_db, sample_transaction_data):
        bank_id = temp_db.add_bank(1, BankCreate(name="Itaú"))
        card_id = temp_db.add_card(1, CardCreate(bank_id=bank_id, name="Platinum"))
        sample_transaction_data.bank_id = bank_id
        sample_transaction_data.card_id = card_id

        transaction_id = temp_db.add_transaction(1, sample_transaction_data)
        transaction = temp_db.get_transaction(transaction_id, 1)

        assert transaction.bank_name == "Itaú"
        assert transaction.card_name == "Platinum"
        assert [t.id for t in temp_db.list_transactions(1, TransactionFilters(bank_id=bank_id))] == [transaction_id]

        with pytest.raises(RecordInUseError):
            temp_db.delete_card(card_id, 1)

    def test_card_from_another_bank(self, temp_db, sample_transaction_data):
        itau = temp_db.add_bank(1, BankCreate(name="Itaú"))
        nubank = temp_db.add_bank(1, BankCreate(name="Nubank"))
        card_id = temp_db.add_card(1, CardCreate(bank_id=nubank, name="Roxinho"))
        sample_transaction_data.bank_id = itau
        sample_transaction_data.card_id = card_id

        with pytest.raises(ReferenceMismatchError):
            temp_db.add_transaction(1, sample_transaction_data)

        assert temp_db.list_transactions(1) == []

    def test_update_transaction_card_checked_against_stored_bank(self, temp_db, sample_transaction_data):
        itau = temp_db.add_bank(1, BankCreate(name="Itaú"))
        nubank = temp_db.add_bank(1, BankCreate(name="Nubank"))
        itau_card = temp_db.add_card(1, CardCreate(bank_id=itau, name="Platinum"))
        nubank_card = temp_db.add_card(1, CardCreate(bank_id=nubank, name="Roxinho"))
        sample_transaction_data.bank_id = itau
        transaction_id = temp_db.add_transaction(1, sample_transaction_data)

        with pytest.raises(ReferenceMismatchError):
            temp_db.update_transaction(transaction_id, 1, TransactionUpdate(card_id=nubank_card))

        assert temp_db.update_transaction(transaction_id, 1, TransactionUpdate(card_id=itau_card)) is True
        assert temp_db.get_transaction(transaction_id, 1).card_name == "Platinum"

    def test_migrates_transactions_without_bank_columns(self, tmp_path):
        """Test databases created before banks and cards get the new columns."""
        db_path = str(tmp_path / "old.db")
        db_manager = DatabaseManager(db_path)
        with db_manager.get_connection() as conn:
            conn.execute("""
                CREATE TABLE transactions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    category_id INTEGER,
                    type TEXT NOT NULL,
                    description TEXT NOT NULL,
                    amount DECIMAL(10,2) NOT NULL,
                    occurred_on DATE NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                INSERT INTO transactions (user_id, type, description, amount, occurred_on)
                VALUES (1, 'despesa', 'Antiga', '12.00', '2024-03-01')
            """)
            conn.commit()

        db_manager.initialize_database()

        transactions = db_manager.list_transactions(1)
        assert [t.description for t in transactions] == ["Antiga"]
        assert transactions[0].bank_id is None
        assert transactions[0].card_id is None
