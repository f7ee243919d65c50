from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify

from app.fintrack.errors import ApiError, json_body
from app.fintrack.modules.ai.groq_client import GroqError, groq_client_from_config
from app.fintrack.modules.ai.service import generate_prompt
from app.fintrack.scope import require_session

bp = Blueprint("ai", __name__)


@bp.post("/ai/generate-prompt")
@require_session
def ai_generate_prompt():
    body = json_body()
    details = body.get("details")
    if not isinstance(details, str) or not details.strip():
        raise ApiError("Details are required to generate a prompt")

    client = groq_client_from_config(current_app.config)
    if client is None:
        current_app.logger.error("AI prompt requested but GROQ_API_KEY is not set")
        raise ApiError("AI service is not configured", 500)

    try:
        prompt = generate_prompt(
            client,
            details.strip(),
            agent_name=(body.get("agentName") or None),
            agent_description=(body.get("agentDescription") or None),
        )
    except GroqError as e:
        current_app.logger.error("Groq completion failed (request_id=%s): %s", getattr(g, "request_id", None), e)
        raise ApiError("Failed to generate prompt with AI service", 500) from e

    return jsonify({"status": 200, "data": {"prompt": prompt}, "message": "AI prompt generated successfully"})
