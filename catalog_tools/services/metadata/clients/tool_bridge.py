"""JSON-RPC ``tools/call`` bridge shared by tool-backed resolvers."""

from __future__ import annotations

import json
import threading
import uuid
from typing import Any, Dict, List, Mapping, Optional

from ..exceptions import ResolverTransportError


def build_tool_call(name: str, arguments: Dict[str, Any], *, prefix: str = "tool") -> Dict[str, Any]:
    """Return the JSON-RPC envelope for a single tool invocation."""

    return {
        "jsonrpc": "2.0",
        "id": f"{prefix}-{uuid.uuid4().hex[:12]}",
        "method": "tools/call",
        "params": {"name": name, "arguments": arguments},
    }


def _json_from_content(content: Any) -> Any:
    if not isinstance(content, list):
        return None
    parts: List[str] = [
        item["text"]
        for item in content
        if isinstance(item, Mapping) and item.get("type") == "text" and isinstance(item.get("text"), str)
    ]
    joined = "\n".join(parts).strip()
    if not joined:
        return None
    try:
        return json.loads(joined)
    except ValueError:
        return joined


def extract_tool_result(name: str, payload: Any) -> Any:
    """Return ``structuredContent`` or the JSON carried by text content.

    Raises :class:`ResolverTransportError` for JSON-RPC error envelopes.
    """

    if not isinstance(payload, Mapping):
        raise ResolverTransportError(f"Tool bridge returned an unexpected payload for {name}")
    error = payload.get("error")
    if error:
        message = error.get("message") if isinstance(error, Mapping) else str(error)
        raise ResolverTransportError(message or f"Tool bridge returned error for {name}")
    result = payload.get("result")
    if not isinstance(result, Mapping):
        return None
    if "structuredContent" in result and result["structuredContent"] is not None:
        return result["structuredContent"]
    return _json_from_content(result.get("content"))


class ToolBridgeMixin:
    """Mixin for :class:`BaseResolver` subclasses that talk to a tool bridge."""

    tool_call_prefix = "tool"

    def _call_tool(
        self,
        endpoint: str,
        name: str,
        arguments: Dict[str, Any],
        *,
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        envelope = build_tool_call(name, arguments, prefix=self.tool_call_prefix)
        try:
            payload = self._request_json(  # type: ignore[attr-defined]
                "POST",
                endpoint,
                cancel_event=cancel_event,
                json_body=envelope,
                headers={"content-type": "application/json"},
            )
        except ResolverTransportError as exc:
            raise type(exc)(
                f"Tool call failed for {name}: {exc}", status_code=exc.status_code
            ) from exc
        return extract_tool_result(name, payload)


__all__ = ["ToolBridgeMixin", "build_tool_call", "extract_tool_result"]
