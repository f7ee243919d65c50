from datetime import datetime
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app.fintrack import create_app
from app.fintrack.auth import _login_attempts
from app.fintrack.db import session_scope
from app.fintrack.models import Base, User
from app.fintrack.modules.subscriptions.service import _add_months, next_billing_date
from app.fintrack.modules.transactions.models import Transaction


class TestNextBillingDate:
    def test_monthly_rollover(self):
        assert next_billing_date(datetime(2024, 1, 15), "MONTHLY", now=datetime(2024, 3, 20)) == datetime(2024, 4, 15)

    def test_monthly_before_day_of_month(self):
        assert next_billing_date(datetime(2024, 1, 15), "MONTHLY", now=datetime(2024, 3, 10)) == datetime(2024, 3, 15)

    def test_same_day_before_billing_time_stays_in_cycle(self):
        start = datetime(2024, 1, 15, 10, 0)
        assert next_billing_date(start, "MONTHLY", now=datetime(2024, 2, 15, 9, 0)) == datetime(2024, 2, 15, 10, 0)
        assert next_billing_date(start, "MONTHLY", now=datetime(2024, 2, 15, 11, 0)) == datetime(2024, 3, 15, 10, 0)

    def test_on_billing_day_moves_to_next_cycle(self):
        assert next_billing_date(datetime(2024, 1, 15), "MONTHLY", now=datetime(2024, 2, 15)) == datetime(2024, 3, 15)

    @pytest.mark.parametrize("cycle", ["DAILY", "WEEKLY", "MONTHLY", "QUARTERLY", "YEARLY"])
    def test_future_start_is_unchanged(self, cycle):
        start = datetime(2099, 1, 1)
        assert next_billing_date(start, cycle, now=datetime(2024, 6, 1)) == start

    def test_daily(self):
        assert next_billing_date(datetime(2024, 1, 1), "DAILY", now=datetime(2024, 1, 3, 12)) == datetime(2024, 1, 4)

    def test_weekly(self):
        assert next_billing_date(datetime(2024, 1, 1), "WEEKLY", now=datetime(2024, 1, 10)) == datetime(2024, 1, 15)

    def test_quarterly_is_always_in_the_future(self):
        start = datetime(2024, 1, 15)
        now = datetime(2024, 5, 20)
        result = next_billing_date(start, "QUARTERLY", now=now)
        assert result == datetime(2024, 7, 15)
        assert result > now

    def test_yearly(self):
        start = datetime(2023, 6, 1)
        assert next_billing_date(start, "YEARLY", now=datetime(2024, 3, 1)) == datetime(2024, 6, 1)
        assert next_billing_date(start, "YEARLY", now=datetime(2024, 7, 1)) == datetime(2025, 6, 1)

    def test_month_end_overflows_into_next_month(self):
        # Feb 31 does not exist: the extra days carry into March.
        assert next_billing_date(datetime(2024, 1, 31), "MONTHLY", now=datetime(2024, 2, 10)) == datetime(2024, 3, 2)

    def test_add_months_across_year(self):
        assert _add_months(datetime(2024, 11, 5, 8, 30), 3) == datetime(2025, 2, 5, 8, 30)

    def test_unknown_cycle(self):
        with pytest.raises(ValueError):
            next_billing_date(datetime(2020, 1, 1), "HOURLY", now=datetime(2024, 1, 1))


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        s.add(User(email="alice@example.com", password_hash=generate_password_hash("password1"), is_active=True))
    _login_attempts.clear()
    return app


def _login(app, email="alice@example.com"):
    c = app.test_client()
    r = c.post("/api/auth/sign-in", json={"email": email, "password": "password1"})
    assert r.status_code == 200
    return c, {"X-CSRF-Token": r.json["csrfToken"]}


def test_create_subscription(app):
    c, h = _login(app)
    r = c.post(
        "/api/subscriptions",
        json={"title": "Netflix", "amount": "15.99", "billingCycle": "MONTHLY", "startDate": "2099-01-01T00:00:00Z"},
        headers=h,
    )
    assert r.status_code == 201
    sub = r.json
    assert sub["currency"] == "USD"
    assert sub["status"] == "ACTIVE"
    assert sub["reminderEnabled"] is True
    assert Decimal(sub["amount"]) == Decimal("15.99")
    assert sub["nextBillingDate"] == "2099-01-01T00:00:00"


def test_subscription_validation(app):
    c, h = _login(app)
    r = c.post(
        "/api/subscriptions",
        json={"title": "", "amount": 0, "billingCycle": "FORTNIGHTLY", "notifyDaysBefore": -1},
        headers=h,
    )
    assert r.status_code == 400
    paths = {tuple(e["path"]) for e in r.json["error"]}
    assert paths == {("title",), ("amount",), ("billingCycle",), ("startDate",), ("notifyDaysBefore",)}


def test_update_and_cancel(app):
    c, h = _login(app)
    sub = c.post(
        "/api/subscriptions",
        json={"title": "Gym", "amount": 30, "billingCycle": "MONTHLY", "startDate": "2024-01-15"},
        headers=h,
    ).json
    r = c.patch(
        f"/api/subscriptions/{sub['id']}",
        json={"status": "CANCELLED", "endDate": "2024-06-30", "notifyDaysBefore": 2},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json["status"] == "CANCELLED"
    assert r.json["endDate"] == "2024-06-30T00:00:00"
    assert r.json["notifyDaysBefore"] == 2


def test_delete_detaches_transactions(app):
    c, h = _login(app)
    acc = c.post("/api/accounts", json={"name": "A", "type": "BANK", "currentBalance": 100}, headers=h).json
    sub = c.post(
        "/api/subscriptions",
        json={"title": "Music", "amount": 10, "billingCycle": "MONTHLY", "startDate": "2024-01-01", "accountId": acc["id"]},
        headers=h,
    ).json
    tx = c.post(
        "/api/transactions",
        json={"amount": 10, "type": "EXPENSE", "accountId": acc["id"], "subscriptionId": sub["id"]},
        headers=h,
    ).json

    assert c.delete(f"/api/subscriptions/{sub['id']}", headers=h).status_code == 200
    with session_scope(app) as s:
        assert s.get(Transaction, tx["id"]).subscription_id is None
    assert c.get("/api/subscriptions").json == []
