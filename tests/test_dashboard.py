import pytest
from werkzeug.security import generate_password_hash

from app.fintrack import create_app
from app.fintrack.auth import _login_attempts
from app.fintrack.db import session_scope
from app.fintrack.models import Base, User


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        for email in ("alice@example.com", "bob@example.com"):
            s.add(User(email=email, password_hash=generate_password_hash("password1"), is_active=True))
    _login_attempts.clear()
    return app


def _login(app, email="alice@example.com"):
    c = app.test_client()
    r = c.post("/api/auth/sign-in", json={"email": email, "password": "password1"})
    assert r.status_code == 200
    return c, {"X-CSRF-Token": r.json["csrfToken"]}


def _tx(c, h, **payload):
    r = c.post("/api/transactions", json=payload, headers=h)
    assert r.status_code == 201, r.json
    return r.json


@pytest.fixture()
def seeded(app):
    c, h = _login(app)
    main = c.post("/api/accounts", json={"name": "Main", "type": "BANK", "currentBalance": 1000}, headers=h).json
    savings = c.post("/api/accounts", json={"name": "Savings", "type": "BANK", "currentBalance": 0}, headers=h).json
    rent = c.post("/api/categories", json={"name": "Rent", "type": "EXPENSE", "color": "#ff0000"}, headers=h).json
    landlord = c.post("/api/payees", json={"name": "Landlord"}, headers=h).json
    cafe = c.post("/api/payees", json={"name": "Cafe"}, headers=h).json

    _tx(c, h, amount=500, type="INCOME", accountId=main["id"], date="2024-03-05")
    _tx(c, h, amount=200, type="EXPENSE", accountId=main["id"], date="2024-03-10",
        categoryId=rent["id"], payeeId=landlord["id"])
    _tx(c, h, amount=30, type="EXPENSE", accountId=main["id"], date="2024-03-31T23:59:59", payeeId=cafe["id"])
    _tx(c, h, amount=50, type="EXPENSE", accountId=main["id"], date="2024-02-28", payeeId=cafe["id"])
    _tx(c, h, amount=100, type="TRANSFER", accountId=main["id"], toAccountId=savings["id"], date="2024-03-15")
    return c, h


def test_dashboard_totals(seeded):
    c, _ = seeded
    r = c.get("/api/dashboard?month=2024-03")
    assert r.status_code == 200
    data = r.json

    assert data["totalBalance"] == 1220.0
    assert data["monthlyIncome"] == 500.0
    assert data["monthlyExpense"] == 230.0
    assert len(data["recentTransactions"]) == 5
    assert data["recentTransactions"][0]["date"] == "2024-03-31T23:59:59"
    assert {a["name"] for a in data["accounts"]} == {"Main", "Savings"}
    assert data["topPayees"] == [{"name": "Landlord", "amount": 200.0}, {"name": "Cafe", "amount": 30.0}]


def test_dashboard_month_bounds(seeded):
    c, _ = seeded
    data = c.get("/api/dashboard?month=2024-02").json
    assert data["monthlyIncome"] == 0.0
    assert data["monthlyExpense"] == 50.0
    assert data["topPayees"] == [{"name": "Cafe", "amount": 50.0}]


def test_dashboard_without_accounts(app):
    c, _ = _login(app, "bob@example.com")
    data = c.get("/api/dashboard").json
    assert data == {
        "totalBalance": 0.0,
        "monthlyIncome": 0.0,
        "monthlyExpense": 0.0,
        "recentTransactions": [],
        "accounts": [],
        "topPayees": [],
    }


def test_dashboard_is_scoped(seeded, app):
    c, _ = _login(app, "bob@example.com")
    assert c.get("/api/dashboard?month=2024-03").json["monthlyIncome"] == 0.0


@pytest.mark.parametrize("month", ["2024-13", "March", "2024/03"])
def test_invalid_month(seeded, month):
    c, _ = seeded
    r = c.get(f"/api/dashboard?month={month}")
    assert r.status_code == 400
    assert r.json["error"][0]["path"] == ["month"]


def test_insights(seeded):
    c, _ = seeded
    data = c.get("/api/insights?month=2024-03").json

    assert data["expenseByCategory"] == [
        {"name": "Rent", "value": 200.0, "fill": "#ff0000"},
        {"name": "Uncategorized", "value": 30.0, "fill": "#8884d8"},
    ]
    assert data["incomeByCategory"] == [{"name": "Uncategorized", "value": 500.0, "fill": "#82ca9d"}]

    history = data["history"]
    assert len(history) == 12
    assert history[0]["month"] == "2024-01"
    assert history[1] == {"month": "2024-02", "income": 0.0, "expense": 50.0}
    assert history[2] == {"month": "2024-03", "income": 500.0, "expense": 230.0}


def test_insights_without_accounts(app):
    c, _ = _login(app, "bob@example.com")
    assert c.get("/api/insights").json == {"expenseByCategory": [], "incomeByCategory": [], "history": []}
