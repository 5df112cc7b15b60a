"""Chat-completion client and response normalization."""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from openai import AsyncOpenAI

from mcp_inference.models import InferenceRequest, ToolCallRequest, get_field

logger = logging.getLogger(__name__)

STRING_PREVIEW_CHARS = 400
SHAPE_PREVIEW_CHARS = 800


class MalformedResponseError(RuntimeError):
    """The completion transport returned something that is not a completion."""


def create_client(request: InferenceRequest) -> AsyncOpenAI:
    return AsyncOpenAI(api_key=request.token, base_url=request.endpoint)


def _has_choices(response: Any) -> bool:
    if isinstance(response, Mapping):
        return "choices" in response
    if response is None or isinstance(response, (str, bytes, int, float, bool, list)):
        return False
    return hasattr(response, "choices")


def _preview(response: Any) -> str:
    try:
        text = json.dumps(response, default=str)
    except (TypeError, ValueError):
        text = repr(response)
    return text[:SHAPE_PREVIEW_CHARS]


async def chat_completion(client: Any, params: dict[str, Any], context: str) -> Any:
    """
    Call `client.chat.completions.create(**params)` and make sure a
    completion comes back.

    Some gateways hand back the raw body as a string; that is parsed as
    JSON. Anything without `choices` raises MalformedResponseError with a
    bounded preview of what was received. Errors are logged and re-raised.
    """
    try:
        response = await client.chat.completions.create(**params)
        logger.debug(f"{context}: raw response type={type(response).__name__}")

        if isinstance(response, str):
            try:
                response = json.loads(response)
            except json.JSONDecodeError as e:
                preview = response[:STRING_PREVIEW_CHARS]
                raise MalformedResponseError(
                    f"{context}: Chat completion response was a string and not valid JSON "
                    f"({e}). Preview: {preview}"
                ) from e

        if not _has_choices(response):
            raise MalformedResponseError(
                f"{context}: Unexpected response shape (no choices). Preview: {_preview(response)}"
            )

        return response
    except Exception as err:
        logger.error(f"{context}: chat completion failed: {err}")
        raise


def first_message(response: Any) -> tuple[str | None, list[ToolCallRequest]]:
    """Content and tool calls of the first choice's message."""
    choices = get_field(response, "choices") or []
    if not choices:
        return None, []
    message = get_field(choices[0], "message")
    if message is None:
        return None, []
    raw_calls = get_field(message, "tool_calls") or []
    return get_field(message, "content"), [ToolCallRequest.from_raw(tc) for tc in raw_calls]
