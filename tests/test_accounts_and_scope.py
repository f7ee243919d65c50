"""Accounts CRUD and personal/organization scoping."""
from decimal import Decimal

import pytest
from werkzeug.security import generate_password_hash

from app.fintrack import create_app
from app.fintrack.auth import _login_attempts
from app.fintrack.db import session_scope
from app.fintrack.models import AuditEvent, Base, Member, Organization, User
from app.fintrack.modules.accounts.models import FinanceAccount


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")

    app = create_app()
    Base.metadata.create_all(bind=app.extensions["sqlalchemy_engine"])

    with session_scope(app) as s:
        alice = User(email="alice@example.com", password_hash=generate_password_hash("password1"), is_active=True)
        bob = User(email="bob@example.com", password_hash=generate_password_hash("password1"), is_active=True)
        s.add_all([alice, bob])
        s.flush()
        org = Organization(id="org-1", name="Acme", slug="acme", created_by_user_id=alice.id)
        s.add(org)
        s.flush()
        s.add(Member(organization_id=org.id, user_id=alice.id, role="owner"))
    _login_attempts.clear()
    return app


def _login(app, email="alice@example.com"):
    c = app.test_client()
    r = c.post("/api/auth/sign-in", json={"email": email, "password": "password1"})
    assert r.status_code == 200
    return c, {"X-CSRF-Token": r.json["csrfToken"]}


def test_create_personal_account(app):
    c, h = _login(app)
    r = c.post("/api/accounts", json={"name": "Checking", "type": "BANK", "currentBalance": "250.50"}, headers=h)
    assert r.status_code == 201
    body = r.json
    assert body["userId"] is not None
    assert body["organizationId"] is None
    assert body["currency"] == "USD"
    assert Decimal(body["currentBalance"]) == Decimal("250.50")

    r = c.get("/api/accounts")
    assert [a["name"] for a in r.json] == ["Checking"]

    with session_scope(app) as s:
        assert s.query(AuditEvent).filter(AuditEvent.action == "account.create").count() == 1


def test_create_in_organization_scope(app):
    c, h = _login(app)
    org_h = {**h, "X-Organization-Id": "org-1"}
    r = c.post("/api/accounts", json={"name": "Company Card", "type": "CREDIT_CARD", "currentBalance": 0}, headers=org_h)
    assert r.status_code == 201
    assert r.json["organizationId"] == "org-1"
    assert r.json["userId"] is None

    # Not visible in personal scope, visible in org scope.
    assert c.get("/api/accounts").json == []
    assert [a["name"] for a in c.get("/api/accounts", headers=org_h).json] == ["Company Card"]


def test_validation_errors_are_structured(app):
    c, h = _login(app)
    r = c.post("/api/accounts", json={"name": "", "type": "PIGGY", "currentBalance": "abc"}, headers=h)
    assert r.status_code == 400
    paths = {tuple(e["path"]) for e in r.json["error"]}
    assert paths == {("name",), ("type",), ("currentBalance",)}
    with session_scope(app) as s:
        assert s.query(FinanceAccount).count() == 0


def test_default_flag_is_exclusive(app):
    c, h = _login(app)
    a = c.post("/api/accounts", json={"name": "A", "type": "CASH", "currentBalance": 0, "isDefault": True}, headers=h).json
    b = c.post("/api/accounts", json={"name": "B", "type": "CASH", "currentBalance": 0, "isDefault": True}, headers=h).json
    by_id = {x["id"]: x for x in c.get("/api/accounts").json}
    assert by_id[a["id"]]["isDefault"] is False
    assert by_id[b["id"]]["isDefault"] is True


def test_update_and_delete_account(app):
    c, h = _login(app)
    acc = c.post("/api/accounts", json={"name": "Wallet", "type": "CASH", "currentBalance": 5}, headers=h).json

    r = c.patch(f"/api/accounts/{acc['id']}", json={"name": "Pocket", "currency": "eur"}, headers=h)
    assert r.status_code == 200
    assert r.json["name"] == "Pocket"
    assert r.json["currency"] == "EUR"

    r = c.delete(f"/api/accounts/{acc['id']}", headers=h)
    assert r.status_code == 200
    assert c.get("/api/accounts").json == []


def test_missing_account_is_404(app):
    c, h = _login(app)
    r = c.patch("/api/accounts/nope", json={"name": "x"}, headers=h)
    assert r.status_code == 404


def test_other_users_account_is_403_and_unchanged(app):
    alice, ha = _login(app)
    acc = alice.post("/api/accounts", json={"name": "Mine", "type": "BANK", "currentBalance": 10}, headers=ha).json

    bob, hb = _login(app, "bob@example.com")
    r = bob.patch(f"/api/accounts/{acc['id']}", json={"name": "Stolen"}, headers=hb)
    assert r.status_code == 403
    r = bob.delete(f"/api/accounts/{acc['id']}", headers=hb)
    assert r.status_code == 403

    assert [a["name"] for a in alice.get("/api/accounts").json] == ["Mine"]


def test_personal_row_is_403_from_org_scope(app):
    c, h = _login(app)
    acc = c.post("/api/accounts", json={"name": "Mine", "type": "BANK", "currentBalance": 10}, headers=h).json
    r = c.patch(f"/api/accounts/{acc['id']}", json={"name": "Moved"}, headers={**h, "X-Organization-Id": "org-1"})
    assert r.status_code == 403


def test_non_member_cannot_use_org_scope(app):
    bob, hb = _login(app, "bob@example.com")
    org_h = {**hb, "X-Organization-Id": "org-1"}
    assert bob.get("/api/accounts", headers=org_h).status_code == 403
    r = bob.post("/api/accounts", json={"name": "Sneaky", "type": "CASH", "currentBalance": 0}, headers=org_h)
    assert r.status_code == 403
    with session_scope(app) as s:
        assert s.query(FinanceAccount).count() == 0
