"""
Recurring expenses (monthly bills) and the transactions generated from them.
"""

import sqlite3
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Any

from .algorithms import clamp_due_date
from .database import DatabaseManager, to_column_value
from .exceptions import RecordNotFoundError
from .models import (
    RecurrenceFrequency, RecurringExpense, RecurringExpenseCreate, RecurringExpenseUpdate,
    Transaction, TransactionCreate, TransactionType, round_money,
)

logger = logging.getLogger(__name__)

RECURRING_SELECT = """
    SELECT r.*, c.name AS category_name, b.name AS bank_name, k.name AS card_name
    FROM recurring_expenses r
    LEFT JOIN categories c ON c.id = r.category_id
    LEFT JOIN banks b ON b.id = r.bank_id
    LEFT JOIN cards k ON k.id = r.card_id
"""


class RecurringExpenseManager:
    """Stores a user's recurring bills and turns them into transactions."""

    def __init__(self, db_manager: DatabaseManager):
        """Initialize recurring expense manager.

        Args:
            db_manager: Database manager whose schema holds recurring_expenses
        """
        self.db_manager = db_manager
        self.logger = logger

    def add_expense(self, user_id: int, expense: RecurringExpenseCreate) -> int:
        """Add a recurring expense.

        Raises:
            RecordNotFoundError: If the category, bank or card does not belong to the user
            ReferenceMismatchError: If the card belongs to another bank
        """
        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor()
            self.db_manager.validate_references(
                cursor, user_id,
                category_id=expense.category_id,
                bank_id=expense.bank_id,
                card_id=expense.card_id,
            )

            cursor.execute("""
                INSERT INTO recurring_expenses (
                    user_id, category_id, bank_id, card_id, description, amount,
                    due_day, frequency, active, notes
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                user_id,
                expense.category_id,
                expense.bank_id,
                expense.card_id,
                expense.description,
                str(expense.amount),
                expense.due_day,
                expense.frequency.value,
                expense.active,
                expense.notes.strip() if expense.notes else None,
            ))
            expense_id = cursor.lastrowid
            conn.commit()

        self.logger.info(f"Added recurring expense with ID: {expense_id}")
        return expense_id

    def get_expense(self, expense_id: int, user_id: int) -> Optional[RecurringExpense]:
        with self.db_manager.get_connection() as conn:
            row = conn.execute(
                RECURRING_SELECT + " WHERE r.id = ? AND r.user_id = ?",
                (expense_id, user_id),
            ).fetchone()
            return self._row_to_expense(row) if row else None

    def list_expenses(self, user_id: int, active: Optional[bool] = None) -> List[RecurringExpense]:
        """List a user's recurring expenses by due day."""
        query = RECURRING_SELECT + " WHERE r.user_id = ?"
        params: List[Any] = [user_id]
        if active is not None:
            query += " AND r.active = ?"
            params.append(active)
        query += " ORDER BY r.due_day, r.id"

        with self.db_manager.get_connection() as conn:
            rows = conn.execute(query, params).fetchall()
            return [self._row_to_expense(row) for row in rows]

    def update_expense(self, expense_id: int, user_id: int, updates: RecurringExpenseUpdate) -> bool:
        """Update a recurring expense.

        Returns:
            True if update was successful, False if it was not found
        """
        update_dict = updates.model_dump(exclude_unset=True)
        if not update_dict:
            return True  # No updates to make

        update_fields = [f"{field} = ?" for field in update_dict]
        update_values = [to_column_value(v) for v in update_dict.values()]
        update_values.extend([expense_id, user_id])

        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor()
            bank_id = update_dict.get('bank_id')
            if update_dict.get('card_id') is not None and 'bank_id' not in update_dict:
                current = cursor.execute(
                    "SELECT bank_id FROM recurring_expenses WHERE id = ? AND user_id = ?",
                    (expense_id, user_id),
                ).fetchone()
                bank_id = current["bank_id"] if current else None
            self.db_manager.validate_references(
                cursor, user_id,
                category_id=update_dict.get('category_id'),
                bank_id=bank_id,
                card_id=update_dict.get('card_id'),
            )

            cursor.execute(f"""
                UPDATE recurring_expenses
                SET {', '.join(update_fields)}
                WHERE id = ? AND user_id = ?
            """, update_values)
            rows_affected = cursor.rowcount
            conn.commit()

        if rows_affected > 0:
            self.logger.info(f"Updated recurring expense {expense_id}")
            return True
        self.logger.warning(f"Recurring expense {expense_id} not found for update")
        return False

    def delete_expense(self, expense_id: int, user_id: int) -> bool:
        with self.db_manager.get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(
                "DELETE FROM recurring_expenses WHERE id = ? AND user_id = ?",
                (expense_id, user_id),
            )
            conn.commit()
            return cursor.rowcount > 0

    def generate_transaction(self, expense_id: int, user_id: int,
                             today: Optional[date] = None) -> Transaction:
        """Record this month's occurrence of an active recurring expense.

        The transaction is an expense dated on the due day of the current
        month, clamped to the month's last day, and keeps the bill's
        category, bank and card.

        Raises:
            RecordNotFoundError: If the expense is missing, inactive or not the user's
        """
        today = today or date.today()
        expense = self.get_expense(expense_id, user_id)
        if expense is None or not expense.active:
            raise RecordNotFoundError(f"Recurring expense {expense_id} not found or inactive")

        due_date = clamp_due_date(expense.due_day, today.month, today.year)
        transaction_id = self.db_manager.add_transaction(user_id, TransactionCreate(
            type=TransactionType.EXPENSE,
            description=expense.description,
            amount=expense.amount,
            occurred_on=due_date,
            category_id=expense.category_id,
            bank_id=expense.bank_id,
            card_id=expense.card_id,
        ))

        self.logger.info(
            f"Generated transaction {transaction_id} from recurring expense {expense_id} for {due_date}"
        )
        return self.db_manager.get_transaction(transaction_id, user_id)

    def monthly_commitment(self, user_id: int) -> Decimal:
        """Total of the user's active monthly bills."""
        total = sum(
            (e.amount for e in self.list_expenses(user_id, active=True)
             if e.frequency == RecurrenceFrequency.MONTHLY),
            Decimal("0"),
        )
        return round_money(total)

    def _row_to_expense(self, row: sqlite3.Row) -> RecurringExpense:
        return RecurringExpense(
            id=row["id"],
            user_id=row["user_id"],
            description=row["description"],
            amount=Decimal(str(row["amount"])),
            due_day=row["due_day"],
            frequency=row["frequency"],
            category_id=row["category_id"],
            bank_id=row["bank_id"],
            card_id=row["card_id"],
            active=bool(row["active"]),
            notes=row["notes"],
            category_name=row["category_name"],
            bank_name=row["bank_name"],
            card_name=row["card_name"],
            created_at=DatabaseManager._parse_timestamp(row["created_at"]),
            updated_at=DatabaseManager._parse_timestamp(row["updated_at"]),
        )
