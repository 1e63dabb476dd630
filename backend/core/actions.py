"""
Action extraction — best-effort post-processing of a handler response.

Two sources are scanned and unioned, inline content first:
  1. JSON objects embedded in the response text, at any nesting depth, that carry an "action" key
  2. structured tool results in metadata["tool_results"]

Malformed fragments are dropped. The function is pure: the same response
always yields the same actions in the same order.
"""

import json
import logging
from typing import Any, Optional

from core.types import Action, HandlerResponse

logger = logging.getLogger(__name__)

_DECODER = json.JSONDecoder()


def _as_action(obj: Any) -> Optional[Action]:
    if isinstance(obj, dict) and obj.get("action"):
        return Action.from_dict(obj)
    return None


def _scan_content(content: str) -> list[Action]:
    """Decode a JSON value at every '{' and keep the objects that carry an action key.

    An object that decodes as an action is consumed whole, so its nested
    objects are not scanned again.
    """
    actions = []
    if not content or '"action"' not in content:
        return actions
    idx = content.find("{")
    while idx != -1:
        try:
            parsed, end = _DECODER.raw_decode(content, idx)
        except json.JSONDecodeError:
            parsed, end = None, idx + 1
        action = _as_action(parsed)
        if action:
            actions.append(action)
            idx = content.find("{", end)
            continue
        if parsed is None and '"action"' in content[idx:idx + 200]:
            logger.debug("Discarding malformed action fragment: %.80s", content[idx:])
        idx = content.find("{", idx + 1)
    return actions


def _scan_tool_results(tool_results: list) -> list[Action]:
    actions = []
    for entry in tool_results:
        payload = entry
        # Tool execution records wrap the tool's own output under "result".
        if isinstance(entry, dict) and "action" not in entry and "result" in entry:
            payload = entry["result"]
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.debug("Discarding non-JSON tool result: %.80r", payload)
                continue
        action = _as_action(payload)
        if action:
            actions.append(action)
    return actions


def extract_actions(response: HandlerResponse) -> list[Action]:
    """Collect actions from the response content and its tool results."""
    return _scan_content(response.content) + _scan_tool_results(response.tool_results)
