from __future__ import annotations

import json
from typing import Any, Dict, Optional

from .config import env_key, load_env


def openai_api_key() -> str:
    load_env()
    key = env_key("OPENAI_API_KEY")
    if not key:
        raise RuntimeError("Missing OPENAI_API_KEY in .env")
    return key


def openai_model() -> str:
    load_env()
    return env_key("OPENAI_MODEL") or "gpt-4.1-mini"


def openai_chat_json(
    *,
    system: str,
    user: str,
    model: Optional[str] = None,
    temperature: float = 0.1,
    max_tokens: int = 4096,
    timeout_s: float = 60.0,
) -> Any:
    """
    One JSON-mode chat completion, parsed. Raises on a missing key, an API
    error or a reply that is not JSON; callers decide what "no answer" means.
    Model comes from the argument, then OPENAI_MODEL.
    """
    # imported here: only the generative lookup needs the SDK
    from openai import OpenAI

    client = OpenAI(api_key=openai_api_key(), timeout=timeout_s)

    resp = client.chat.completions.create(
        model=model or openai_model(),
        temperature=temperature,
        max_tokens=max_tokens,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ],
        response_format={"type": "json_object"},
    )

    content = resp.choices[0].message.content or ""
    try:
        return json.loads(content)
    except json.JSONDecodeError as e:
        raise RuntimeError(f"OpenAI returned non-JSON. First 300 chars: {content[:300]}") from e


def as_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None
