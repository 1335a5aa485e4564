"""
OpenAI access for the question generation service.

Only the server side (generation.question_generator) talks to OpenAI; the
client side never holds an OpenAI key.

Model: GPT_MODEL env var, gpt-4o-mini by default.
"""

import os
from dataclasses import dataclass
from typing import Optional

from openai import AsyncOpenAI

GPT_MODEL = os.getenv("GPT_MODEL", "gpt-4o-mini")

_client: Optional[AsyncOpenAI] = None


class MissingApiKeyError(RuntimeError):
    """OPENAI_API_KEY is not configured."""


@dataclass
class GptCompletion:
    content: str
    total_tokens: int


def _openai() -> AsyncOpenAI:
    global _client
    if _client is None:
        api_key = os.getenv("OPENAI_API_KEY")
        if not api_key:
            raise MissingApiKeyError("OPENAI_API_KEY is not set")
        _client = AsyncOpenAI(api_key=api_key)
    return _client


async def call_gpt(
    prompt: str,
    system: str,
    temperature: float = 0.7,
    max_tokens: int = 2048,
    json_mode: bool = False,
) -> GptCompletion:
    """
    One chat completion: a system turn plus a user turn.

    With ``json_mode`` the API is asked for a JSON object; the caller still
    parses and validates it. Token usage is 0 when the API omits it.
    """
    request = {
        "model": GPT_MODEL,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        "temperature": temperature,
        "max_tokens": max_tokens,
    }
    if json_mode:
        request["response_format"] = {"type": "json_object"}

    response = await _openai().chat.completions.create(**request)

    text = response.choices[0].message.content if response.choices else None
    usage = response.usage.total_tokens if response.usage else 0
    return GptCompletion(content=text or "", total_tokens=usage)
