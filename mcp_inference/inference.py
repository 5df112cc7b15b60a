"""
Inference entry points.

- simple_inference: one round-trip, never any tools
- multi_mcp_inference: bounded tool-calling loop across several MCP servers
- mcp_inference: the loop for a single server

The loop is strictly sequential: one completion call, then every tool
call it requested (in order), then the next completion call. When a
structured-output format is requested it is only ever sent on a final
pass without tools, since the two cannot be combined on one call.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

from mcp_inference.bridge import aggregate_tools, build_routing_table, execute_tool_calls
from mcp_inference.completion import chat_completion, create_client, first_message
from mcp_inference.manager import LiveServerHandle
from mcp_inference.models import ConversationMessage, InferenceRequest

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 16


def _base_params(request: InferenceRequest, messages: list[ConversationMessage]) -> dict[str, Any]:
    return {
        "messages": list(messages),
        "max_tokens": request.max_tokens,
        "model": request.model_name,
    }


async def simple_inference(request: InferenceRequest, client: Any = None) -> str | None:
    """One-shot inference without tools."""
    logger.info("Running simple inference without tools")
    client = client or create_client(request)

    params = _base_params(request, list(request.messages))
    if request.response_format:
        params["response_format"] = request.response_format

    response = await chat_completion(client, params, "simple_inference")
    content, _ = first_message(response)
    logger.info(f"Model response: {content or 'No response content'}")
    return content or None


async def multi_mcp_inference(
    request: InferenceRequest,
    handles: Sequence[LiveServerHandle],
    client: Any = None,
    max_iterations: int = MAX_ITERATIONS,
    reject_duplicate_tools: bool = False,
) -> str | None:
    """
    Tool-calling inference across every connected server.

    Args:
        request: The prepared chat request.
        handles: Live server handles. Empty means plain simple inference.
        client: Chat-completion client; built from the request when omitted.
        max_iterations: Hard ceiling on completion calls.
        reject_duplicate_tools: Raise DuplicateToolError instead of letting
                                the last server win a tool-name clash.

    Returns:
        The final assistant content, or the last assistant content seen
        when the iteration cap is hit. None if there is none.
    """
    logger.info(f"Running multi-server MCP inference with {len(handles)} connected servers")

    if not handles:
        logger.warning("No MCP clients provided, falling back to simple inference")
        return await simple_inference(request, client=client)

    client = client or create_client(request)

    all_tools = aggregate_tools(handles)
    routing = build_routing_table(handles, reject_duplicates=reject_duplicate_tools)
    tool_payload = [t.spec.to_openai() for t in all_tools]
    logger.info(f"Aggregated {len(all_tools)} tools from {len(handles)} servers")

    messages: list[ConversationMessage] = list(request.messages)
    iteration = 0
    final_pass = False

    while iteration < max_iterations:
        iteration += 1
        logger.info(f"MCP inference iteration {iteration}")

        params = _base_params(request, messages)
        if final_pass and request.response_format:
            params["response_format"] = request.response_format
        else:
            params["tools"] = tool_payload

        response = await chat_completion(
            client, params, f"multi_mcp_inference iteration {iteration}"
        )
        content, tool_calls = first_message(response)
        logger.info(f"Model response: {content or 'No response content'}")

        assistant: ConversationMessage = {"role": "assistant", "content": content or ""}
        if tool_calls:
            assistant["tool_calls"] = [tc.to_dict() for tc in tool_calls]
        messages.append(assistant)

        if not tool_calls:
            logger.info("No tool calls requested, ending multi-MCP inference loop")
            if request.response_format and not final_pass:
                logger.info("Making one more pass with the requested response format")
                format_type = request.response_format.get("type", "requested")
                messages.append({
                    "role": "user",
                    "content": f"Please provide your response in the exact {format_type} format specified.",
                })
                final_pass = True
                continue
            return content or None

        logger.info(f"Model requested {len(tool_calls)} tool calls")
        results = await execute_tool_calls(routing, tool_calls)
        messages.extend(r.to_message() for r in results)
        logger.info("Tool results added, continuing conversation")

    logger.warning(f"Multi-MCP inference loop exceeded maximum iterations ({max_iterations})")
    for message in reversed(messages):
        if message.get("role") == "assistant":
            return message.get("content") or None
    return None


async def mcp_inference(
    request: InferenceRequest,
    handle: LiveServerHandle,
    client: Any = None,
) -> str | None:
    """Tool-calling inference against a single server."""
    logger.info(f"Running MCP inference with tools from {handle.name}")
    return await multi_mcp_inference(request, [handle], client=client)
