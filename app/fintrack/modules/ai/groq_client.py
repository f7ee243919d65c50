from __future__ import annotations

import json
import time
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any


class GroqError(RuntimeError):
    pass


@dataclass(frozen=True)
class GroqClient:
    api_key: str
    model: str = "openai/gpt-oss-20b"
    base_url: str = "https://api.groq.com/openai/v1"
    timeout_seconds: int = 60

    def request_json(self, path: str, body: dict[str, Any], *, retries: int = 2) -> dict[str, Any]:
        url = self.base_url.rstrip("/") + path
        data = json.dumps(body).encode("utf-8")

        last_err: Exception | None = None
        for attempt in range(retries + 1):
            req = urllib.request.Request(url, data=data, method="POST")
            req.add_header("Authorization", f"Bearer {self.api_key}")
            req.add_header("Content-Type", "application/json")
            req.add_header("Accept", "application/json")
            try:
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
            except urllib.error.HTTPError as e:
                if e.code == 429:
                    # rate limit; brief backoff
                    time.sleep(min(2 * (attempt + 1), 10))
                    last_err = GroqError("Rate limited (429)")
                    continue
                try:
                    detail = e.read().decode("utf-8", errors="ignore")
                except Exception:
                    detail = ""
                raise GroqError(f"HTTP {e.code} from Groq: {detail[:300]}") from e
            except urllib.error.URLError as e:
                last_err = e
                time.sleep(min(1 * (attempt + 1), 5))
                continue
            try:
                parsed = json.loads(raw.decode("utf-8"))
            except ValueError as e:
                raise GroqError(f"Invalid JSON from Groq ({path})") from e
            if not isinstance(parsed, dict):
                raise GroqError(f"Unexpected response from Groq ({path})")
            return parsed
        raise GroqError(f"Groq request failed after retries: {last_err}")

    def chat_completion(
        self,
        messages: list[dict[str, str]],
        *,
        max_tokens: int = 2000,
        temperature: float = 0.7,
    ) -> str:
        j = self.request_json(
            "/chat/completions",
            {
                "model": self.model,
                "messages": messages,
                "max_tokens": max_tokens,
                "temperature": temperature,
            },
        )
        choices = j.get("choices") or []
        content = ""
        if choices and isinstance(choices[0], dict):
            content = ((choices[0].get("message") or {}).get("content") or "").strip()
        if not content:
            raise GroqError("No content in Groq completion")
        return content


def groq_client_from_config(config: dict) -> GroqClient | None:
    api_key = (config.get("GROQ_API_KEY") or "").strip()
    if not api_key:
        return None
    return GroqClient(
        api_key=api_key,
        model=config.get("GROQ_MODEL") or "openai/gpt-oss-20b",
        base_url=config.get("GROQ_BASE_URL") or "https://api.groq.com/openai/v1",
    )
