import pytest
from werkzeug.security import generate_password_hash

import app.fintrack.modules.ai.routes as ai_routes
from app.fintrack import create_app
from app.fintrack.auth import _login_attempts
from app.fintrack.db import session_scope
from app.fintrack.models import Base, User
from app.fintrack.modules.ai.groq_client import GroqClient, GroqError, groq_client_from_config
from app.fintrack.modules.ai.service import build_system_prompt, generate_prompt


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("GROQ_API_KEY", "")

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


def test_requires_session(app):
    r = app.test_client().post("/api/ai/generate-prompt", json={"details": "x"})
    assert r.status_code == 401


def test_requires_details(app):
    app.config["GROQ_API_KEY"] = "gsk-test"
    c, h = _login(app)
    r = c.post("/api/ai/generate-prompt", json={"details": "   "}, headers=h)
    assert r.status_code == 400
    assert r.json["error"] == "Details are required to generate a prompt"


def test_not_configured(app):
    c, h = _login(app)
    r = c.post("/api/ai/generate-prompt", json={"details": "A budgeting coach"}, headers=h)
    assert r.status_code == 500
    assert r.json["error"] == "AI service is not configured"


def test_generate_prompt_success(app, monkeypatch):
    app.config["GROQ_API_KEY"] = "gsk-test"
    seen = {}

    def fake_generate(client, details, agent_name=None, agent_description=None):
        seen.update(client=client, details=details, agent_name=agent_name)
        return "You are a budgeting coach."

    monkeypatch.setattr(ai_routes, "generate_prompt", fake_generate)
    c, h = _login(app)
    r = c.post(
        "/api/ai/generate-prompt",
        json={"details": " A budgeting coach ", "agentName": "Penny"},
        headers=h,
    )
    assert r.status_code == 200
    assert r.json == {
        "status": 200,
        "data": {"prompt": "You are a budgeting coach."},
        "message": "AI prompt generated successfully",
    }
    assert seen["details"] == "A budgeting coach"
    assert seen["agent_name"] == "Penny"
    assert seen["client"].api_key == "gsk-test"


def test_generate_prompt_upstream_failure(app, monkeypatch):
    app.config["GROQ_API_KEY"] = "gsk-test"

    def boom(*args, **kwargs):
        raise GroqError("HTTP 503 from Groq")

    monkeypatch.setattr(ai_routes, "generate_prompt", boom)
    c, h = _login(app)
    r = c.post("/api/ai/generate-prompt", json={"details": "anything"}, headers=h)
    assert r.status_code == 500
    assert r.json["error"] == "Failed to generate prompt with AI service"


def test_chat_completion_sends_messages(monkeypatch):
    captured = {}

    def fake_request_json(self, path, body, *, retries=2):
        captured["path"] = path
        captured["body"] = body
        return {"choices": [{"message": {"content": "  Be helpful.  "}}]}

    monkeypatch.setattr(GroqClient, "request_json", fake_request_json)
    client = GroqClient(api_key="k", model="test-model")

    assert generate_prompt(client, "Track spending", agent_name="Penny") == "Be helpful."
    assert captured["path"] == "/chat/completions"
    body = captured["body"]
    assert body["model"] == "test-model"
    assert body["max_tokens"] == 2000
    assert [m["role"] for m in body["messages"]] == ["system", "user"]
    assert "Agent Name: Penny" in body["messages"][0]["content"]
    assert body["messages"][1]["content"].endswith("Track spending")


def test_chat_completion_without_content(monkeypatch):
    monkeypatch.setattr(GroqClient, "request_json", lambda self, path, body, retries=2: {"choices": []})
    with pytest.raises(GroqError):
        GroqClient(api_key="k").chat_completion([{"role": "user", "content": "hi"}])


def test_client_from_config():
    assert groq_client_from_config({"GROQ_API_KEY": "  "}) is None
    client = groq_client_from_config({"GROQ_API_KEY": "k", "GROQ_MODEL": "m"})
    assert client.model == "m"
    assert client.base_url == "https://api.groq.com/openai/v1"


def test_system_prompt_omits_missing_agent_fields():
    prompt = build_system_prompt("Track spending")
    assert "Track spending" in prompt
    assert "Agent Name" not in prompt
