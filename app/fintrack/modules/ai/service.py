from __future__ import annotations

from app.fintrack.modules.ai.groq_client import GroqClient


def build_system_prompt(details: str, agent_name: str | None = None, agent_description: str | None = None) -> str:
    lines = [
        "You are an expert at designing AI assistants. Write a detailed, professional "
        "system prompt for an AI agent from the requirements below.",
        "",
        "Requirements:",
        details,
        "",
    ]
    if agent_name:
        lines.append(f"Agent Name: {agent_name}")
    if agent_description:
        lines.append(f"Agent Description: {agent_description}")
    lines += [
        "",
        "The system prompt should cover:",
        "1. A clear definition of the agent's role",
        "2. Expected behaviours and personality",
        "3. Interaction guidelines",
        "4. Special instructions or constraints",
        "5. A professional, helpful tone",
        "",
        "Keep it thorough without being verbose.",
    ]
    return "\n".join(lines)


def generate_prompt(
    client: GroqClient,
    details: str,
    agent_name: str | None = None,
    agent_description: str | None = None,
) -> str:
    messages = [
        {"role": "system", "content": build_system_prompt(details, agent_name, agent_description)},
        {
            "role": "user",
            "content": f"Generate a system prompt for an AI agent based on these requirements: {details}",
        },
    ]
    return client.chat_completion(messages, max_tokens=2000, temperature=0.7)
