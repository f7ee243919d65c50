"""
Read-only aggregations for the dashboard and insights pages.

Both work on the transactions whose source account is in the active scope.
TRANSFER rows move money between accounts and are never counted as income
or expense.
"""
from __future__ import annotations

from collections import OrderedDict
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.fintrack.modules.accounts.models import FinanceAccount
from app.fintrack.modules.accounts.service import total_balance
from app.fintrack.modules.categories.models import Category
from app.fintrack.modules.payees.models import Payee
from app.fintrack.modules.transactions.models import Transaction
from app.fintrack.modules.transactions.service import list_transactions_for_accounts
from app.fintrack.utils import iso, month_bounds

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.fintrack.scope import Scope

RECENT_LIMIT = 5
TOP_PAYEES_LIMIT = 5
OVERVIEW_ACCOUNTS = 5
EXPENSE_FILL = "#8884d8"
INCOME_FILL = "#82ca9d"


def _num(value: Decimal | None) -> float:
    return float(value or 0)


def _sum_by_type(s: "Session", account_ids: list[str], start: datetime, end: datetime) -> dict[str, Decimal]:
    rows = (
        s.query(Transaction.type, func.sum(Transaction.amount))
        .filter(
            Transaction.account_id.in_(account_ids),
            Transaction.date >= start,
            Transaction.date < end,
            Transaction.type.in_(("INCOME", "EXPENSE")),
        )
        .group_by(Transaction.type)
        .all()
    )
    return {tx_type: total for tx_type, total in rows}


def build_dashboard(s: "Session", scope: "Scope", month: date) -> dict[str, Any]:
    accounts = (
        s.query(FinanceAccount)
        .filter(scope.clause(FinanceAccount))
        .order_by(FinanceAccount.created_at.desc())
        .all()
    )
    overview = [
        {"id": a.id, "name": a.name, "currentBalance": _num(a.current_balance), "type": a.type}
        for a in accounts[:OVERVIEW_ACCOUNTS]
    ]
    if not accounts:
        return {
            "totalBalance": 0.0,
            "monthlyIncome": 0.0,
            "monthlyExpense": 0.0,
            "recentTransactions": [],
            "accounts": [],
            "topPayees": [],
        }

    account_ids = [a.id for a in accounts]
    start, end = month_bounds(month)
    totals = _sum_by_type(s, account_ids, start, end)

    recent = list_transactions_for_accounts(s, account_ids, limit=RECENT_LIMIT)
    recent_payload = [
        {
            "id": t.id,
            "amount": _num(t.amount),
            "type": t.type,
            "date": iso(t.date),
            "description": t.description,
            "status": t.status,
            "category": {"name": t.category.name} if t.category else None,
            "account": {"name": t.account.name} if t.account else None,
        }
        for t in recent
    ]

    top_payees = (
        s.query(Payee.name, func.sum(Transaction.amount).label("total"))
        .join(Transaction, Transaction.payee_id == Payee.id)
        .filter(
            Transaction.account_id.in_(account_ids),
            Transaction.type == "EXPENSE",
            Transaction.date >= start,
            Transaction.date < end,
        )
        .group_by(Payee.name)
        .order_by(func.sum(Transaction.amount).desc())
        .limit(TOP_PAYEES_LIMIT)
        .all()
    )

    return {
        "totalBalance": _num(total_balance(accounts)),
        "monthlyIncome": _num(totals.get("INCOME")),
        "monthlyExpense": _num(totals.get("EXPENSE")),
        "recentTransactions": recent_payload,
        "accounts": overview,
        "topPayees": [{"name": name, "amount": _num(total)} for name, total in top_payees],
    }


def _by_category(s: "Session", account_ids: list[str], tx_type: str, start: datetime, end: datetime, fill: str):
    rows = (
        s.query(Category.name, Category.color, func.sum(Transaction.amount).label("total"))
        .select_from(Transaction)
        .outerjoin(Category, Transaction.category_id == Category.id)
        .filter(
            Transaction.account_id.in_(account_ids),
            Transaction.type == tx_type,
            Transaction.date >= start,
            Transaction.date < end,
        )
        .group_by(Category.id, Category.name, Category.color)
        .order_by(func.sum(Transaction.amount).desc())
        .all()
    )
    return [{"name": name or "Uncategorized", "value": _num(total), "fill": color or fill} for name, color, total in rows]


def build_insights(s: "Session", scope: "Scope", month: date) -> dict[str, Any]:
    account_ids = [row[0] for row in s.query(FinanceAccount.id).filter(scope.clause(FinanceAccount)).all()]
    if not account_ids:
        return {"expenseByCategory": [], "incomeByCategory": [], "history": []}

    start, end = month_bounds(month)
    year_start = datetime(month.year, 1, 1)
    year_end = datetime(month.year + 1, 1, 1)

    history: OrderedDict[str, dict[str, float]] = OrderedDict(
        (f"{month.year}-{m:02d}", {"income": 0.0, "expense": 0.0}) for m in range(1, 13)
    )
    rows = (
        s.query(Transaction.date, Transaction.type, Transaction.amount)
        .filter(
            Transaction.account_id.in_(account_ids),
            Transaction.type.in_(("INCOME", "EXPENSE")),
            Transaction.date >= year_start,
            Transaction.date < year_end,
        )
        .all()
    )
    for when, tx_type, amount in rows:
        bucket = history[f"{when.year}-{when.month:02d}"]
        bucket["income" if tx_type == "INCOME" else "expense"] += _num(amount)

    return {
        "expenseByCategory": _by_category(s, account_ids, "EXPENSE", start, end, EXPENSE_FILL),
        "incomeByCategory": _by_category(s, account_ids, "INCOME", start, end, INCOME_FILL),
        "history": [{"month": key, **values} for key, values in history.items()],
    }
