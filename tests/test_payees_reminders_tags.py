"""Payees, reminders and tags."""
import pytest
from werkzeug.security import generate_password_hash

from app.fintrack import create_app
from app.fintrack.auth import _login_attempts
from app.fintrack.db import session_scope
from app.fintrack.models import Base, Member, Organization, User
from app.fintrack.modules.transactions.models import Transaction


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        s.add(User(email="alice@example.com", password_hash=generate_password_hash("password1"), is_active=True))
        s.add(User(email="bob@example.com", password_hash=generate_password_hash("password1"), is_active=True))
    _login_attempts.clear()
    return app


def _login(app, email="alice@example.com"):
    c = app.test_client()
    r = c.post("/api/auth/sign-in", json={"email": email, "password": "password1"})
    assert r.status_code == 200
    return c, {"X-CSRF-Token": r.json["csrfToken"]}


def test_payee_crud(app):
    c, h = _login(app)
    r = c.post("/api/payees", json={"name": "Landlord", "email": "", "phone": "555-0100"}, headers=h)
    assert r.status_code == 201
    payee = r.json
    assert payee["email"] is None
    assert payee["phone"] == "555-0100"

    r = c.patch(f"/api/payees/{payee['id']}", json={"email": "ll@example.com"}, headers=h)
    assert r.status_code == 200
    assert r.json["email"] == "ll@example.com"

    assert [p["name"] for p in c.get("/api/payees").json] == ["Landlord"]
    assert c.delete(f"/api/payees/{payee['id']}", headers=h).status_code == 200
    assert c.get("/api/payees").json == []


def test_payee_invalid_email(app):
    c, h = _login(app)
    r = c.post("/api/payees", json={"name": "X", "email": "not-an-email"}, headers=h)
    assert r.status_code == 400
    assert r.json["error"][0]["path"] == ["email"]


def test_payee_of_other_user_is_403(app):
    alice, ha = _login(app)
    payee = alice.post("/api/payees", json={"name": "Shop"}, headers=ha).json
    bob, hb = _login(app, "bob@example.com")
    assert bob.patch(f"/api/payees/{payee['id']}", json={"name": "Mine"}, headers=hb).status_code == 403
    assert bob.get("/api/payees").json == []


def test_reminders_ordered_by_due_date_desc(app):
    c, h = _login(app)
    for title, due in (("Early", "2024-01-01"), ("Late", "2024-06-01"), ("Mid", "2024-03-01")):
        r = c.post("/api/reminders", json={"title": title, "dueDate": due}, headers=h)
        assert r.status_code == 201
        assert r.json["status"] == "PENDING"
    assert [x["title"] for x in c.get("/api/reminders").json] == ["Late", "Mid", "Early"]


def test_reminder_validation_and_status_update(app):
    c, h = _login(app)
    r = c.post("/api/reminders", json={"title": "  "}, headers=h)
    assert r.status_code == 400
    assert {tuple(e["path"]) for e in r.json["error"]} == {("title",), ("dueDate",)}

    rem = c.post("/api/reminders", json={"title": "Pay rent", "dueDate": "2024-05-01T09:00:00Z"}, headers=h).json
    r = c.patch(f"/api/reminders/{rem['id']}", json={"status": "DONE"}, headers=h)
    assert r.status_code == 400
    r = c.patch(f"/api/reminders/{rem['id']}", json={"status": "COMPLETED"}, headers=h)
    assert r.status_code == 200
    assert r.json["status"] == "COMPLETED"
    assert c.delete(f"/api/reminders/{rem['id']}", headers=h).status_code == 200
    assert c.delete(f"/api/reminders/{rem['id']}", headers=h).status_code == 404


def test_tag_default_color_and_update(app):
    c, h = _login(app)
    tag = c.post("/api/tags", json={"name": "travel"}, headers=h).json
    assert tag["color"] == "#000000"
    r = c.patch(f"/api/tags/{tag['id']}", json={"color": "#ABC"}, headers=h)
    assert r.status_code == 200
    assert r.json["color"] == "#ABC"
    r = c.patch(f"/api/tags/{tag['id']}", json={"color": "blue"}, headers=h)
    assert r.status_code == 400


def test_deleting_tag_strips_it_from_transactions(app):
    c, h = _login(app)
    acc = c.post("/api/accounts", json={"name": "A", "type": "BANK", "currentBalance": 100}, headers=h).json
    keep = c.post("/api/tags", json={"name": "keep"}, headers=h).json
    drop = c.post("/api/tags", json={"name": "drop"}, headers=h).json
    tx = c.post(
        "/api/transactions",
        json={"amount": 1, "type": "EXPENSE", "accountId": acc["id"], "tagIds": [keep["id"], drop["id"]]},
        headers=h,
    ).json
    assert set(tx["tagIds"]) == {keep["id"], drop["id"]}

    assert c.delete(f"/api/tags/{drop['id']}", headers=h).status_code == 200
    with session_scope(app) as s:
        assert s.get(Transaction, tx["id"]).tag_ids == [keep["id"]]


def test_unknown_tag_on_transaction_is_400(app):
    c, h = _login(app)
    acc = c.post("/api/accounts", json={"name": "A", "type": "BANK", "currentBalance": 100}, headers=h).json
    r = c.post(
        "/api/transactions",
        json={"amount": 1, "type": "EXPENSE", "accountId": acc["id"], "tagIds": ["nope"]},
        headers=h,
    )
    assert r.status_code == 400


def test_payee_owner_follows_scope(app):
    with session_scope(app) as s:
        alice = s.query(User).filter(User.email == "alice@example.com").one()
        s.add(Organization(id="org-1", name="Acme", slug="acme", created_by_user_id=alice.id))
        s.flush()
        s.add(Member(organization_id="org-1", user_id=alice.id, role="owner"))
        alice_id = alice.id
    c, h = _login(app)

    r = c.post("/api/payees", json={"name": "Supplier"}, headers={**h, "X-Organization-Id": "org-1"})
    assert r.status_code == 201
    assert r.json["organizationId"] == "org-1"
    assert r.json["userId"] is None

    r = c.post("/api/payees", json={"name": "Landlord"}, headers=h)
    assert r.json["organizationId"] is None
    assert r.json["userId"] == alice_id

    assert [p["name"] for p in c.get("/api/payees").json] == ["Landlord"]
