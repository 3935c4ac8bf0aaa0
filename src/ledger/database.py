"""
Database operations for the finance ledger application.
Handles SQLite database initialization, CRUD operations, and queries.
Every table is owned by a user; all queries filter on user_id.
"""

import sqlite3
import logging
from contextlib import contextmanager
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Dict, Any

from .exceptions import (
    SourceUnavailable,
    RecordNotFoundError,
    DuplicateCategoryError,
    CategoryInUseError,
    RecordInUseError,
    ReferenceMismatchError,
)
from .models import (
    Category, CategoryCreate, CategoryUpdate,
    Transaction, TransactionCreate, TransactionUpdate,
    TransactionFilters, TransactionType, ExtractionResult,
    SavingsGoal, SavingsGoalCreate, SavingsGoalUpdate, GoalStatus,
    Bank, BankCreate, BankUpdate, Card, CardCreate, CardUpdate,
    UserProfile, UserProfileUpdate,
    DEFAULT_CATEGORY_COLOR, DEFAULT_CARD_COLOR,
)

logger = logging.getLogger(__name__)

TRANSACTION_SELECT = """
    SELECT t.*, c.name AS category_name, c.color AS category_color,
           b.name AS bank_name, k.name AS card_name
    FROM transactions t
    LEFT JOIN categories c ON c.id = t.category_id
    LEFT JOIN banks b ON b.id = t.bank_id
    LEFT JOIN cards k ON k.id = t.card_id
"""

# Columns added after the first schema; created on older databases at startup.
TRANSACTION_MIGRATIONS = {
    'bank_id': "INTEGER REFERENCES banks(id)",
    'card_id': "INTEGER REFERENCES cards(id)",
}


def to_column_value(value: Any) -> Any:
    """Convert a model field value to what sqlite stores."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return value


class DatabaseManager:
    """Manages all database operations for ledger data.

    Create one per process and pass it to the collaborators that need it.
    """

    def __init__(self, db_path: str = "ledger.db"):
        """Initialize database manager.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = db_path
        self.logger = logger

    @contextmanager
    def get_connection(self):
        """Context manager for database connections with automatic cleanup."""
        conn = None
        try:
            conn = sqlite3.connect(self.db_path)
            conn.row_factory = sqlite3.Row  # Enable column access by name
            conn.execute("PRAGMA foreign_keys = ON")
            yield conn
        except Exception as e:
            if conn:
                conn.rollback()
            self.logger.error(f"Database error: {str(e)}")
            raise
        finally:
            if conn:
                conn.close()

    def initialize_database(self) -> None:
        """Initialize database with proper schema and indexes."""
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS user_profiles (
                        user_id INTEGER PRIMARY KEY,
                        name TEXT,
                        fixed_monthly_income DECIMAL(10,2) NOT NULL DEFAULT 0
                            CHECK (fixed_monthly_income >= 0),
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS categories (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        type TEXT NOT NULL CHECK (type IN ('receita', 'despesa')),
                        color TEXT DEFAULT '#6366f1',
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE (user_id, name, type)
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS banks (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        name TEXT NOT NULL,
                        type TEXT NOT NULL DEFAULT 'banco'
                            CHECK (type IN ('banco', 'carteira', 'investimento', 'outro')),
                        initial_balance DECIMAL(10,2) NOT NULL DEFAULT 0,
                        current_balance DECIMAL(10,2) NOT NULL DEFAULT 0,
                        color TEXT DEFAULT '#6366f1',
                        notes TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS cards (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        bank_id INTEGER NOT NULL REFERENCES banks(id),
                        name TEXT NOT NULL,
                        type TEXT NOT NULL DEFAULT 'credito'
                            CHECK (type IN ('credito', 'debito', 'pre_pago')),
                        credit_limit DECIMAL(10,2) CHECK (credit_limit >= 0),
                        closing_day INTEGER CHECK (closing_day BETWEEN 1 AND 31),
                        due_day INTEGER CHECK (due_day BETWEEN 1 AND 31),
                        color TEXT DEFAULT '#818cf8',
                        active INTEGER NOT NULL DEFAULT 1,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS transactions (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        category_id INTEGER REFERENCES categories(id),
                        bank_id INTEGER REFERENCES banks(id),
                        card_id INTEGER REFERENCES cards(id),
                        type TEXT NOT NULL CHECK (type IN ('receita', 'despesa')),
                        description TEXT NOT NULL,
                        amount DECIMAL(10,2) NOT NULL CHECK (amount > 0),
                        occurred_on DATE NOT NULL,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)
                self._migrate_columns(cursor, 'transactions', TRANSACTION_MIGRATIONS)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS recurring_expenses (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        category_id INTEGER REFERENCES categories(id),
                        bank_id INTEGER REFERENCES banks(id),
                        card_id INTEGER REFERENCES cards(id),
                        description TEXT NOT NULL,
                        amount DECIMAL(10,2) NOT NULL CHECK (amount > 0),
                        due_day INTEGER NOT NULL CHECK (due_day BETWEEN 1 AND 31),
                        frequency TEXT NOT NULL DEFAULT 'mensal'
                            CHECK (frequency IN ('mensal', 'semanal', 'quinzenal', 'anual')),
                        active INTEGER NOT NULL DEFAULT 1,
                        notes TEXT,
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS savings_goals (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        user_id INTEGER NOT NULL,
                        category_id INTEGER REFERENCES categories(id),
                        title TEXT NOT NULL,
                        description TEXT,
                        target_amount DECIMAL(10,2) NOT NULL CHECK (target_amount > 0),
                        current_amount DECIMAL(10,2) NOT NULL DEFAULT 0 CHECK (current_amount >= 0),
                        start_date DATE NOT NULL,
                        end_date DATE NOT NULL,
                        status TEXT NOT NULL DEFAULT 'ativa',
                        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_user_date ON transactions(user_id, occurred_on)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_category ON transactions(category_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_transactions_card ON transactions(card_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_categories_user_type ON categories(user_id, type)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_cards_bank ON cards(bank_id)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_recurring_user_day ON recurring_expenses(user_id, due_day)")
                cursor.execute("CREATE INDEX IF NOT EXISTS idx_goals_user_status ON savings_goals(user_id, status)")

                for table in ('user_profiles', 'banks', 'cards', 'transactions',
                              'recurring_expenses', 'savings_goals'):
                    key = 'user_id' if table == 'user_profiles' else 'id'
                    cursor.execute(f"""
                        CREATE TRIGGER IF NOT EXISTS update_{table}_updated_at
                        AFTER UPDATE ON {table}
                        BEGIN
                            UPDATE {table} SET updated_at = CURRENT_TIMESTAMP WHERE {key} = NEW.{key};
                        END
                    """)

                conn.commit()
                self.logger.info("Database initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise

    def _migrate_columns(self, cursor: sqlite3.Cursor, table: str, columns: Dict[str, str]) -> None:
        existing = {row["name"] for row in cursor.execute(f"PRAGMA table_info({table})")}
        for column, definition in columns.items():
            if column not in existing:
                cursor.execute(f"ALTER TABLE {table} ADD COLUMN {column} {definition}")
                self.logger.info(f"Added column {table}.{column}")

    # Profile

    def get_profile(self, user_id: int) -> UserProfile:
        """Return the user's profile; users without one get a zero fixed income.

        Raises:
            SourceUnavailable: If the database cannot be queried
        """
        try:
            with self.get_connection() as conn:
                row = conn.execute(
                    "SELECT * FROM user_profiles WHERE user_id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as e:
            raise SourceUnavailable(f"Could not read profile: {str(e)}") from e
        if row is None:
            return UserProfile(user_id=user_id)
        return UserProfile(
            user_id=row["user_id"],
            name=row["name"],
            fixed_monthly_income=Decimal(str(row["fixed_monthly_income"])),
        )

    def update_profile(self, user_id: int, updates: UserProfileUpdate) -> UserProfile:
        """Create or update the user's profile with the fields that were set."""
        update_dict = updates.model_dump(exclude_unset=True)
        if update_dict.get('name') is not None:
            update_dict['name'] = update_dict['name'].strip()

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("INSERT OR IGNORE INTO user_profiles (user_id) VALUES (?)", (user_id,))
            if update_dict:
                assignments = ", ".join(f"{field} = ?" for field in update_dict)
                cursor.execute(
                    f"UPDATE user_profiles SET {assignments} WHERE user_id = ?",
                    [to_column_value(v) for v in update_dict.values()] + [user_id],
                )
            conn.commit()

        self.logger.info(f"Updated profile for user {user_id}")
        return self.get_profile(user_id)

    # Categories

    def add_category(self, user_id: int, category: CategoryCreate) -> int:
        """Add a category for a user.

        Raises:
            DuplicateCategoryError: If the user already has one with this name and type
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO categories (user_id, name, type, color)
                    VALUES (?, ?, ?, ?)
                """, (
                    user_id,
                    category.name.strip(),
                    category.type.value,
                    category.color or DEFAULT_CATEGORY_COLOR,
                ))
                category_id = cursor.lastrowid
                conn.commit()

                self.logger.info(f"Added category with ID: {category_id}")
                return category_id

        except sqlite3.IntegrityError as e:
            raise DuplicateCategoryError(
                f"Category '{category.name}' ({category.type.value}) already exists"
            ) from e

    def get_category(self, category_id: int, user_id: int) -> Optional[Category]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            ).fetchone()
            return self._row_to_category(row) if row else None

    def list_categories(self, user_id: int, type: Optional[TransactionType] = None) -> List[Category]:
        """List a user's categories ordered by name."""
        query = "SELECT * FROM categories WHERE user_id = ?"
        params: List[Any] = [user_id]
        if type is not None:
            query += " AND type = ?"
            params.append(type.value)
        query += " ORDER BY name"

        with self.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_category(row) for row in rows]

    def find_default_category(self, user_id: int, type: TransactionType) -> Optional[Category]:
        """Return the user's first category of the given type, if any."""
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM categories WHERE user_id = ? AND type = ? ORDER BY id LIMIT 1",
                (user_id, type.value),
            ).fetchone()
            return self._row_to_category(row) if row else None

    def update_category(self, category_id: int, user_id: int, updates: CategoryUpdate) -> bool:
        """Rename, retype or recolor a category.

        Returns:
            True if update was successful, False if category not found

        Raises:
            DuplicateCategoryError: If another category already has the new name and type
        """
        update_dict = updates.model_dump(exclude_unset=True)
        if not update_dict:
            return True  # No updates to make

        update_fields = [f"{field} = ?" for field in update_dict]
        update_values = [to_column_value(v) for v in update_dict.values()]
        update_values.extend([category_id, user_id])

        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                cursor.execute(f"""
                    UPDATE categories
                    SET {', '.join(update_fields)}
                    WHERE id = ? AND user_id = ?
                """, update_values)
                rows_affected = cursor.rowcount
                conn.commit()
        except sqlite3.IntegrityError as e:
            raise DuplicateCategoryError(
                f"Another category already uses the name '{update_dict.get('name')}'"
            ) from e

        if rows_affected > 0:
            self.logger.info(f"Updated category {category_id}")
            return True
        self.logger.warning(f"Category {category_id} not found for update")
        return False

    def delete_category(self, category_id: int, user_id: int) -> None:
        """Delete a category that no transaction references.

        Raises:
            RecordNotFoundError: If the category does not belong to the user
            CategoryInUseError: If transactions still reference it
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            row = cursor.execute(
                "SELECT id FROM categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            ).fetchone()
            if row is None:
                raise RecordNotFoundError(f"Category {category_id} not found")

            in_use = cursor.execute("""
                SELECT (SELECT COUNT(*) FROM transactions WHERE category_id = ?)
                     + (SELECT COUNT(*) FROM savings_goals WHERE category_id = ?)
                     + (SELECT COUNT(*) FROM recurring_expenses WHERE category_id = ?)
            """, (category_id, category_id, category_id)).fetchone()[0]
            if in_use > 0:
                raise CategoryInUseError(
                    f"Category {category_id} has {in_use} transaction(s), goal(s) or bill(s) attached"
                )

            cursor.execute(
                "DELETE FROM categories WHERE id = ? AND user_id = ?",
                (category_id, user_id),
            )
            conn.commit()
            self.logger.info(f"Deleted category {category_id}")

    # Banks and cards

    def add_bank(self, user_id: int, bank: BankCreate) -> int:
        """Add a bank account; its current balance starts at the initial balance."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute("""
                INSERT INTO banks (user_id, name, type, initial_balance, current_balance, color, notes)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id,
                bank.name,
                bank.type.value,
                str(bank.initial_balance),
                str(bank.initial_balance),
                bank.color or DEFAULT_CATEGORY_COLOR,
                bank.notes.strip() if bank.notes else None,
            ))
            bank_id = cursor.lastrowid
            conn.commit()

            self.logger.info(f"Added bank with ID: {bank_id}")
            return bank_id

    def get_bank(self, bank_id: int, user_id: int) -> Optional[Bank]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM banks WHERE id = ? AND user_id = ?",
                (bank_id, user_id),
            ).fetchone()
            return self._row_to_bank(row) if row else None

    def list_banks(self, user_id: int) -> List[Bank]:
        with self.get_connection() as conn:
            rows = conn.execute(
                "SELECT * FROM banks WHERE user_id = ? ORDER BY name", (user_id,)
            ).fetchall()
            return [self._row_to_bank(row) for row in rows]

    def update_bank(self, bank_id: int, user_id: int, updates: BankUpdate) -> bool:
        """Update a bank with the fields that were set."""
        return self._update_row('banks', bank_id, user_id, updates.model_dump(exclude_unset=True))

    def delete_bank(self, bank_id: int, user_id: int) -> None:
        """Delete a bank that has no cards or movements.

        Raises:
            RecordNotFoundError: If the bank does not belong to the user
            RecordInUseError: If cards, transactions or recurring expenses reference it
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            self._check_owner(cursor, 'banks', bank_id, user_id)

            cards = cursor.execute(
                "SELECT COUNT(*) FROM cards WHERE bank_id = ?", (bank_id,)
            ).fetchone()[0]
            if cards > 0:
                raise RecordInUseError(f"Bank {bank_id} still has {cards} card(s)")

            in_use = cursor.execute("""
                SELECT (SELECT COUNT(*) FROM transactions WHERE bank_id = ?)
                     + (SELECT COUNT(*) FROM recurring_expenses WHERE bank_id = ?)
            """, (bank_id, bank_id)).fetchone()[0]
            if in_use > 0:
                raise RecordInUseError(f"Bank {bank_id} is referenced by {in_use} record(s)")

            cursor.execute("DELETE FROM banks WHERE id = ? AND user_id = ?", (bank_id, user_id))
            conn.commit()
            self.logger.info(f"Deleted bank {bank_id}")

    def add_card(self, user_id: int, card: CardCreate) -> int:
        """Add a card under one of the user's banks.

        Raises:
            RecordNotFoundError: If the bank does not belong to the user
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            self._check_owner(cursor, 'banks', card.bank_id, user_id)

            cursor.execute("""
                INSERT INTO cards (
                    user_id, bank_id, name, type, credit_limit, closing_day, due_day, color, active
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id,
                card.bank_id,
                card.name,
                card.type.value,
                str(card.credit_limit) if card.credit_limit is not None else None,
                card.closing_day,
                card.due_day,
                card.color or DEFAULT_CARD_COLOR,
                card.active,
            ))
            card_id = cursor.lastrowid
            conn.commit()

            self.logger.info(f"Added card with ID: {card_id}")
            return card_id

    def get_card(self, card_id: int, user_id: int) -> Optional[Card]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM cards WHERE id = ? AND user_id = ?",
                (card_id, user_id),
            ).fetchone()
            return self._row_to_card(row) if row else None

    def list_cards(self, user_id: int, bank_id: Optional[int] = None,
                   active: Optional[bool] = None) -> List[Card]:
        query = "SELECT * FROM cards WHERE user_id = ?"
        params: List[Any] = [user_id]
        if bank_id is not None:
            query += " AND bank_id = ?"
            params.append(bank_id)
        if active is not None:
            query += " AND active = ?"
            params.append(active)
        query += " ORDER BY name"

        with self.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_card(row) for row in rows]

    def update_card(self, card_id: int, user_id: int, updates: CardUpdate) -> bool:
        return self._update_row('cards', card_id, user_id, updates.model_dump(exclude_unset=True))

    def delete_card(self, card_id: int, user_id: int) -> None:
        """Delete a card that no transaction or recurring expense uses.

        Raises:
            RecordNotFoundError: If the card does not belong to the user
            RecordInUseError: If it is still referenced
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            self._check_owner(cursor, 'cards', card_id, user_id)

            in_use = cursor.execute("""
                SELECT (SELECT COUNT(*) FROM transactions WHERE card_id = ?)
                     + (SELECT COUNT(*) FROM recurring_expenses WHERE card_id = ?)
            """, (card_id, card_id)).fetchone()[0]
            if in_use > 0:
                raise RecordInUseError(f"Card {card_id} is referenced by {in_use} record(s)")

            cursor.execute("DELETE FROM cards WHERE id = ? AND user_id = ?", (card_id, user_id))
            conn.commit()
            self.logger.info(f"Deleted card {card_id}")

    def validate_references(self, cursor: sqlite3.Cursor, user_id: int,
                            category_id: Optional[int] = None,
                            bank_id: Optional[int] = None,
                            card_id: Optional[int] = None) -> None:
        """Check that linked records belong to the user and agree with each other.

        Raises:
            RecordNotFoundError: If a category, bank or card does not belong to the user
            ReferenceMismatchError: If the card was issued by a different bank
        """
        if category_id is not None:
            self._check_owner(cursor, 'categories', category_id, user_id)
        if bank_id is not None:
            self._check_owner(cursor, 'banks', bank_id, user_id)
        if card_id is not None:
            card_bank = self._check_owner(cursor, 'cards', card_id, user_id)["bank_id"]
            if bank_id is not None and card_bank != bank_id:
                raise ReferenceMismatchError(
                    f"Card {card_id} does not belong to bank {bank_id}"
                )

    # Transactions

    def add_transaction(self, user_id: int, transaction: TransactionCreate) -> int:
        """Add a new transaction to the database.

        Args:
            user_id: Owner of the transaction
            transaction: Transaction data to add

        Returns:
            ID of the newly created transaction

        Raises:
            RecordNotFoundError: If the category, bank or card does not belong to the user
            ReferenceMismatchError: If the card belongs to another bank
        """
        try:
            with self.get_connection() as conn:
                cursor = conn.cursor()
                self.validate_references(
                    cursor, user_id,
                    category_id=transaction.category_id,
                    bank_id=transaction.bank_id,
                    card_id=transaction.card_id,
                )

                cursor.execute("""
                    INSERT INTO transactions (
                        user_id, category_id, bank_id, card_id, type, description, amount, occurred_on
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    user_id,
                    transaction.category_id,
                    transaction.bank_id,
                    transaction.card_id,
                    transaction.type.value,
                    transaction.description,
                    str(transaction.amount),
                    transaction.occurred_on.isoformat(),
                ))

                transaction_id = cursor.lastrowid
                conn.commit()

                self.logger.info(f"Added transaction with ID: {transaction_id}")
                return transaction_id

        except (RecordNotFoundError, ReferenceMismatchError):
            raise
        except Exception as e:
            self.logger.error(f"Failed to add transaction: {str(e)}")
            raise

    def get_transaction(self, transaction_id: int, user_id: int) -> Optional[Transaction]:
        """Get a transaction by ID, restricted to its owner.

        Returns:
            Transaction object if found, None otherwise
        """
        with self.get_connection() as conn:
            row = conn.execute(
                TRANSACTION_SELECT + " WHERE t.id = ? AND t.user_id = ?",
                (transaction_id, user_id),
            ).fetchone()
            return self._row_to_transaction(row) if row else None

    def list_transactions(self, user_id: int, filters: Optional[TransactionFilters] = None,
                          limit: Optional[int] = None) -> List[Transaction]:
        """List a user's transactions, newest first.

        Args:
            user_id: Owner of the transactions
            filters: Optional month/type/category/bank/card filters
            limit: Maximum number of transactions to return

        Returns:
            List of Transaction objects

        Raises:
            SourceUnavailable: If the database cannot be queried
        """
        from .algorithms import compute_date_range

        conditions = ["t.user_id = ?"]
        params: List[Any] = [user_id]

        if filters is not None:
            if filters.period is not None:
                start, end = compute_date_range(filters.period.mes, filters.period.ano)
                conditions.append("t.occurred_on BETWEEN ? AND ?")
                params.extend([start.isoformat(), end.isoformat()])
            if filters.type is not None:
                conditions.append("t.type = ?")
                params.append(filters.type.value)
            for column in ('category_id', 'bank_id', 'card_id'):
                value = getattr(filters, column)
                if value is not None:
                    conditions.append(f"t.{column} = ?")
                    params.append(value)

        query = TRANSACTION_SELECT + " WHERE " + " AND ".join(conditions)
        query += " ORDER BY t.occurred_on DESC, t.created_at DESC, t.id DESC"
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)

        try:
            with self.get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise SourceUnavailable(f"Could not list transactions: {str(e)}") from e

        return [self._row_to_transaction(row) for row in rows]

    def update_transaction(self, transaction_id: int, user_id: int, updates: TransactionUpdate) -> bool:
        """Update an existing transaction.

        A new card is checked against the bank being set, or else the stored one.

        Returns:
            True if update was successful, False if transaction not found
        """
        update_dict = updates.model_dump(exclude_unset=True)
        if not update_dict:
            return True  # No updates to make

        update_fields = [f"{field} = ?" for field in update_dict]
        update_values = [to_column_value(v) for v in update_dict.values()]
        update_values.extend([transaction_id, user_id])

        with self.get_connection() as conn:
            cursor = conn.cursor()
            bank_id = update_dict.get('bank_id')
            if update_dict.get('card_id') is not None and 'bank_id' not in update_dict:
                current = cursor.execute(
                    "SELECT bank_id FROM transactions WHERE id = ? AND user_id = ?",
                    (transaction_id, user_id),
                ).fetchone()
                bank_id = current["bank_id"] if current else None
            self.validate_references(
                cursor, user_id,
                category_id=update_dict.get('category_id'),
                bank_id=bank_id,
                card_id=update_dict.get('card_id'),
            )

            cursor.execute(f"""
                UPDATE transactions
                SET {', '.join(update_fields)}
                WHERE id = ? AND user_id = ?
            """, update_values)
            rows_affected = cursor.rowcount
            conn.commit()

            if rows_affected > 0:
                self.logger.info(f"Updated transaction {transaction_id}")
                return True
            self.logger.warning(f"Transaction {transaction_id} not found for update")
            return False

    def delete_transaction(self, transaction_id: int, user_id: int) -> bool:
        """Delete a transaction by ID.

        Returns:
            True if deletion was successful, False if transaction not found
        """
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM transactions WHERE id = ? AND user_id = ?",
                (transaction_id, user_id),
            )
            rows_affected = cursor.rowcount
            conn.commit()

            if rows_affected > 0:
                self.logger.info(f"Deleted transaction {transaction_id}")
                return True
            self.logger.warning(f"Transaction {transaction_id} not found for deletion")
            return False

    def fetch_ledger_records(self, user_id: int, start_date: Optional[date] = None,
                             end_date: Optional[date] = None) -> List[Dict[str, Any]]:
        """Fetch the raw (type, amount, date) rows the aggregator consumes.

        Rows are returned as stored; coercion happens in LedgerRecord.

        Raises:
            SourceUnavailable: If the database cannot be queried
        """
        query = "SELECT type, amount, occurred_on FROM transactions WHERE user_id = ?"
        params: List[Any] = [user_id]
        if start_date is not None and end_date is not None:
            query += " AND occurred_on BETWEEN ? AND ?"
            params.extend([start_date.isoformat(), end_date.isoformat()])

        try:
            with self.get_connection() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as e:
            raise SourceUnavailable(f"Could not read transactions: {str(e)}") from e

        self.logger.debug(f"Fetched {len(rows)} ledger rows for user {user_id}")
        return [dict(row) for row in rows]

    def create_transaction_from_extraction(self, user_id: int, result: ExtractionResult,
                                           occurred_on: Optional[date] = None) -> Optional[Transaction]:
        """Save an OCR result as a transaction when it carries a value.

        Uses the user's first category of the detected type, if any.

        Returns:
            The created Transaction, or None when no value was extracted
        """
        if result.value is None or result.value <= 0:
            self.logger.info("No value extracted; transaction not created")
            return None

        category = self.find_default_category(user_id, result.type)
        transaction_id = self.add_transaction(user_id, TransactionCreate(
            type=result.type,
            description=result.description,
            amount=result.value,
            occurred_on=occurred_on or date.today(),
            category_id=category.id if category else None,
        ))
        return self.get_transaction(transaction_id, user_id)

    # Savings goals

    def add_goal(self, user_id: int, goal: SavingsGoalCreate) -> int:
        """Add a savings goal for a user."""
        with self.get_connection() as conn:
            cursor = conn.cursor()
            self.validate_references(cursor, user_id, category_id=goal.category_id)

            cursor.execute("""
                INSERT INTO savings_goals (
                    user_id, category_id, title, description, target_amount,
                    current_amount, start_date, end_date, status
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id,
                goal.category_id,
                goal.title,
                goal.description.strip() if goal.description else None,
                str(goal.target_amount),
                str(goal.current_amount),
                goal.start_date.isoformat(),
                goal.end_date.isoformat(),
                goal.status.value,
            ))
            goal_id = cursor.lastrowid
            conn.commit()

            self.logger.info(f"Added savings goal with ID: {goal_id}")
            return goal_id

    def get_goal(self, goal_id: int, user_id: int) -> Optional[SavingsGoal]:
        with self.get_connection() as conn:
            row = conn.execute(
                "SELECT * FROM savings_goals WHERE id = ? AND user_id = ?",
                (goal_id, user_id),
            ).fetchone()
            return self._row_to_goal(row) if row else None

    def list_goals(self, user_id: int, status: Optional[GoalStatus] = None) -> List[SavingsGoal]:
        """List a user's goals, most recent first."""
        query = "SELECT * FROM savings_goals WHERE user_id = ?"
        params: List[Any] = [user_id]
        if status is not None:
            query += " AND status = ?"
            params.append(status.value)
        query += " ORDER BY created_at DESC, id DESC"

        with self.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_goal(row) for row in rows]

    def update_goal(self, goal_id: int, user_id: int, updates: SavingsGoalUpdate) -> bool:
        """Update a goal, including its status (e.g. cancelling it).

        Dates are checked against the stored ones when only one side changes.

        Returns:
            True if update was successful, False if goal not found

        Raises:
            ValueError: If the resulting end date precedes the start date
        """
        update_dict = updates.model_dump(exclude_unset=True)
        if not update_dict:
            return True  # No updates to make

        if 'start_date' in update_dict or 'end_date' in update_dict:
            goal = self.get_goal(goal_id, user_id)
            if goal is None:
                return False
            start = update_dict.get('start_date') or goal.start_date
            end = update_dict.get('end_date') or goal.end_date
            if end < start:
                raise ValueError("End date must not be before start date")

        with self.get_connection() as conn:
            cursor = conn.cursor()
            self.validate_references(cursor, user_id, category_id=update_dict.get('category_id'))
        return self._update_row('savings_goals', goal_id, user_id, update_dict)

    def contribute_to_goal(self, goal_id: int, user_id: int, amount: Decimal) -> SavingsGoal:
        """Add an amount to a goal, completing it once the target is reached.

        Raises:
            ValueError: If the amount is not positive
            RecordNotFoundError: If the goal does not belong to the user
        """
        if amount <= 0:
            raise ValueError("Contribution must be greater than zero")

        goal = self.get_goal(goal_id, user_id)
        if goal is None:
            raise RecordNotFoundError(f"Savings goal {goal_id} not found")

        new_amount = goal.current_amount + amount
        status = GoalStatus.COMPLETED if new_amount >= goal.target_amount else goal.status

        with self.get_connection() as conn:
            conn.execute(
                "UPDATE savings_goals SET current_amount = ?, status = ? WHERE id = ? AND user_id = ?",
                (str(new_amount), status.value, goal_id, user_id),
            )
            conn.commit()

        self.logger.info(f"Added {amount} to savings goal {goal_id} (now {new_amount})")
        return self.get_goal(goal_id, user_id)

    def delete_goal(self, goal_id: int, user_id: int) -> bool:
        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM savings_goals WHERE id = ? AND user_id = ?",
                (goal_id, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def _update_row(self, table: str, row_id: int, user_id: int, update_dict: Dict[str, Any]) -> bool:
        if not update_dict:
            return True  # No updates to make

        update_fields = [f"{field} = ?" for field in update_dict]
        update_values = [to_column_value(v) for v in update_dict.values()]
        update_values.extend([row_id, user_id])

        with self.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(f"""
                UPDATE {table}
                SET {', '.join(update_fields)}
                WHERE id = ? AND user_id = ?
            """, update_values)
            rows_affected = cursor.rowcount
            conn.commit()

        if rows_affected > 0:
            self.logger.info(f"Updated {table} row {row_id}")
            return True
        self.logger.warning(f"{table} row {row_id} not found for update")
        return False

    @staticmethod
    def _check_owner(cursor: sqlite3.Cursor, table: str, row_id: int, user_id: int) -> sqlite3.Row:
        row = cursor.execute(
            f"SELECT * FROM {table} WHERE id = ? AND user_id = ?",
            (row_id, user_id),
        ).fetchone()
        if row is None:
            raise RecordNotFoundError(f"{table} row {row_id} not found")
        return row

    def _row_to_category(self, row: sqlite3.Row) -> Category:
        return Category(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            type=row["type"],
            color=row["color"] or DEFAULT_CATEGORY_COLOR,
            created_at=self._parse_timestamp(row["created_at"]),
        )

    def _row_to_bank(self, row: sqlite3.Row) -> Bank:
        return Bank(
            id=row["id"],
            user_id=row["user_id"],
            name=row["name"],
            type=row["type"],
            initial_balance=Decimal(str(row["initial_balance"])),
            current_balance=Decimal(str(row["current_balance"])),
            color=row["color"] or DEFAULT_CATEGORY_COLOR,
            notes=row["notes"],
            created_at=self._parse_timestamp(row["created_at"]),
            updated_at=self._parse_timestamp(row["updated_at"]),
        )

    def _row_to_card(self, row: sqlite3.Row) -> Card:
        return Card(
            id=row["id"],
            user_id=row["user_id"],
            bank_id=row["bank_id"],
            name=row["name"],
            type=row["type"],
            credit_limit=Decimal(str(row["credit_limit"])) if row["credit_limit"] is not None else None,
            closing_day=row["closing_day"],
            due_day=row["due_day"],
            color=row["color"] or DEFAULT_CARD_COLOR,
            active=bool(row["active"]),
            created_at=self._parse_timestamp(row["created_at"]),
            updated_at=self._parse_timestamp(row["updated_at"]),
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        """Convert database row to Transaction object."""
        return Transaction(
            id=row["id"],
            user_id=row["user_id"],
            category_id=row["category_id"],
            bank_id=row["bank_id"],
            card_id=row["card_id"],
            type=row["type"],
            description=row["description"],
            amount=Decimal(str(row["amount"])),
            occurred_on=date.fromisoformat(row["occurred_on"]),
            category_name=row["category_name"],
            category_color=row["category_color"],
            bank_name=row["bank_name"],
            card_name=row["card_name"],
            created_at=self._parse_timestamp(row["created_at"]),
            updated_at=self._parse_timestamp(row["updated_at"]),
        )

    def _row_to_goal(self, row: sqlite3.Row) -> SavingsGoal:
        return SavingsGoal(
            id=row["id"],
            user_id=row["user_id"],
            category_id=row["category_id"],
            title=row["title"],
            description=row["description"],
            target_amount=Decimal(str(row["target_amount"])),
            current_amount=Decimal(str(row["current_amount"])),
            start_date=date.fromisoformat(row["start_date"]),
            end_date=date.fromisoformat(row["end_date"]),
            status=row["status"],
            created_at=self._parse_timestamp(row["created_at"]),
            updated_at=self._parse_timestamp(row["updated_at"]),
        )

    @staticmethod
    def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
        return datetime.fromisoformat(value) if value else None
