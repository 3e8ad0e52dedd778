from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError

from .config import env_key, load_env
from .models import PersonData
from .openai_client import as_dict, openai_chat_json

logger = logging.getLogger(__name__)

ChatJson = Callable[..., Any]

SYSTEM_PROMPT = (
    "You are a careful biographical researcher. Answer with a single JSON object only. "
    "Never invent people, dates or sources."
)


def build_person_prompt(person_name: str) -> str:
    return f"""Research and provide comprehensive biographical information about "{person_name}".

Return a JSON object with this shape:
{{
  "person": {{
    "name": "Full Name",
    "summary": "A 200-word biography covering key achievements, career progression and significant milestones",
    "events": [
      {{
        "date": "YYYY-MM-DD",
        "event_text": "Description of the event",
        "categories": ["birth" | "education" | "career" | "award" | "achievement" | "role" | "personal" | "other"],
        "source_url": "URL if available",
        "source_snippet": "Relevant text snippet from source",
        "confidence": 0.95
      }}
    ],
    "hero_image_url": "Only a real, publicly accessible image URL, otherwise null"
  }}
}}

Focus on birth date and place, education milestones, career progression and major roles,
awards and achievements, significant life events and current position/status.
All dates must be YYYY-MM-DD. Only include verifiable information with confidence 0.8 or higher.
If the person is not a notable public figure or insufficient information is available,
return {{"person": null}}."""


def _unwrap(payload: Any) -> Optional[dict]:
    data = as_dict(payload)
    if data is None:
        return None
    if "person" in data:
        return as_dict(data.get("person"))
    return data


def resolve_one(query: str, *, chat: Optional[ChatJson] = None) -> Optional[PersonData]:
    """
    Single-answer generative lookup.
    Returns None for "no data": missing key, API failure, non-JSON, a null
    answer or a payload that does not validate. Never raises.
    """
    if chat is None:
        load_env()
        if not env_key("OPENAI_API_KEY"):
            logger.info("OpenAI not configured - skipping generative lookup")
            return None
        chat = openai_chat_json

    try:
        payload = chat(system=SYSTEM_PROMPT, user=build_person_prompt(query))
    except Exception as e:
        logger.warning("generative lookup failed for %r: %s: %s", query, type(e).__name__, e)
        return None

    data = _unwrap(payload)
    if not data:
        logger.info("generative lookup returned no data for %r", query)
        return None

    try:
        person = PersonData.model_validate(data)
    except ValidationError as e:
        logger.warning("generative lookup returned an invalid person for %r: %s", query, e.error_count())
        return None

    logger.info("generative lookup found %s with %d events", person.name, len(person.events))
    return person
