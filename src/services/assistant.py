"""
HTTP client for the shopping assistant.

The assistant is an external text-generation endpoint that takes a question as
``{"contents": [{"parts": [{"text": ...}]}]}`` (api key in the ``key`` query
parameter) and answers with ``candidates[0].content.parts[0].text``. It is only
enabled when both STOREFRONT_ASSISTANT_URL and STOREFRONT_ASSISTANT_API_KEY
are set.
"""

import httpx

from utils.config import settings
from utils.errors import AssistantError, ValidationError
from utils.logger import get_logger

_logger = get_logger(__name__)

UNREADABLE_ANSWER = "Sorry, there was a problem with the assistant's response."
NO_ANSWER = "Sorry, I couldn't get an answer."


def is_configured() -> bool:
    return bool(settings.assistant_url and settings.assistant_api_key)


def _get_async_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=settings.assistant_timeout)


def _extract_answer(data) -> str:
    try:
        text = data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return NO_ANSWER
    return text if isinstance(text, str) and text else NO_ANSWER


def _handle_response(response: httpx.Response) -> str:
    if response.status_code != 200:
        _logger.error(f"Assistant answered with HTTP {response.status_code}")
        raise AssistantError(
            f"The assistant returned HTTP {response.status_code}. Please try again later."
        )
    try:
        data = response.json()
    except ValueError as e:
        _logger.warning(f"Unreadable assistant response: {e}")
        return UNREADABLE_ANSWER
    return _extract_answer(data)


async def ask_assistant(question: str) -> str:
    """
    Send one question and return the answer text.

    A reply that is not JSON, or JSON without an answer, still returns a
    readable apology. Missing configuration, network failures and non-200
    replies raise AssistantError.
    """
    question = (question or "").strip()
    if not question:
        raise ValidationError("Ask me anything...")
    if not is_configured():
        raise AssistantError("The shopping assistant is not configured.")

    payload = {"contents": [{"parts": [{"text": question}]}]}
    _logger.debug(f"Asking the assistant: {question!r}")
    try:
        async with _get_async_client() as client:
            response = await client.post(
                settings.assistant_url,
                params={"key": settings.assistant_api_key},
                json=payload,
            )
    except httpx.RequestError as e:
        _logger.error(f"Shopping assistant unavailable: {e}")
        raise AssistantError(
            "Could not reach the shopping assistant. Please try again later."
        ) from e
    return _handle_response(response)
