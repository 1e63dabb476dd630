"""
Local tools the capability handlers may call during a tool-calling round.

Tools never touch storage. They return a JSON string describing a frontend
action ({"action": ...}) which the action extractor later lifts out of
metadata["tool_results"].
"""

import inspect
import json
import logging
from typing import Optional

from agents.prompts import get_message
from core.types import AgentContext

logger = logging.getLogger(__name__)

VALID_ROUTES = {
    "dashboard": "/dashboard",
    "roadmaps": "/roadmaps",
    "tasks": "/tasks",
    "quests": "/quests",
    "playground": "/playground",
    "learn": "/learn",
    "dev-discuss": "/dev-discuss",
    "faq": "/faq",
    "settings": "/settings",
}

ROUTE_DESCRIPTIONS = {
    "dashboard": "Personal dashboard with progress, stats and recent activity",
    "roadmaps": "Learning roadmaps and paths for CS topics",
    "tasks": "Task management for assignments, to-dos and deadlines",
    "quests": "Coding challenges to practice programming skills",
    "playground": "Code editor for writing and running code",
    "learn": "Video tutorials and learning content",
    "dev-discuss": "Community discussions and Q&A forum",
    "faq": "Frequently asked questions and help",
    "settings": "Account settings and preferences",
}


# ── Tools ──

def navigate_to(destination: str, reason: str = "", context: AgentContext = None) -> str:
    """Navigate the user to a page of the platform. Use when the user says things
    like "go to my dashboard", "show me my tasks" or "open the playground".
    Destinations: dashboard, roadmaps, tasks, quests, playground, learn,
    dev-discuss, faq, settings."""
    language = context.language if context else "en"
    key = str(destination or "").strip().lower()
    route = VALID_ROUTES.get(key)
    if route is None:
        logger.warning("Invalid navigation destination: %s", destination)
        return json.dumps({
            "success": False,
            "message": get_message("navigation.unknown", language, destination=destination),
        }, ensure_ascii=False)
    result = {
        "success": True,
        "action": "navigate",
        "route": route,
        "destination": key,
        "description": ROUTE_DESCRIPTIONS[key],
        "message": get_message("navigation.taking_you", language, destination=key),
    }
    if reason:
        result["reason"] = reason
    return json.dumps(result, ensure_ascii=False)


def open_roadmap(roadmap_id: str, title: str = "", context: AgentContext = None) -> str:
    """Open the detail page of one specific roadmap. Use when the user asks to
    open or continue a particular roadmap by name or id."""
    return _open_detail("roadmap", "/roadmaps", roadmap_id, title, context)


def open_quest(quest_id: str, name: str = "", context: AgentContext = None) -> str:
    """Open the detail page of one specific quest (coding challenge). Use when
    the user asks to start or continue a particular quest."""
    return _open_detail("quest", "/quests", quest_id, name, context)


def _open_detail(kind: str, base: str, item_id, title, context) -> str:
    language = context.language if context else "en"
    item_id = str(item_id or "").strip()
    if not item_id:
        return json.dumps({
            "success": False,
            "message": get_message("navigation.missing_id", language, kind=kind),
        }, ensure_ascii=False)
    title = str(title or "").strip()
    return json.dumps({
        "success": True,
        "action": "navigate",
        "route": f"{base}/{item_id}",
        "destination": f"{kind}_detail",
        "message": get_message(f"navigation.opening_{kind}", language,
                               title=f": {title}" if title else ""),
    }, ensure_ascii=False)


def get_available_routes(context: AgentContext = None) -> str:
    """List every page the user can be navigated to. Use when the user asks
    what they can do or where things are on the platform."""
    language = context.language if context else "en"
    return json.dumps({
        "success": True,
        "routes": [
            {"name": name, "path": path, "description": ROUTE_DESCRIPTIONS[name]}
            for name, path in VALID_ROUTES.items()
        ],
        "message": get_message("navigation.routes", language),
    }, ensure_ascii=False)


def render_roadmap(roadmap_id: str = "", context: AgentContext = None) -> str:
    """Show one of the user's roadmaps in the chat. Without a roadmap_id the
    roadmap the user is currently working on is shown."""
    roadmaps = context.domain_summaries.roadmaps if context else {}
    roadmap = _find_roadmap(roadmaps, roadmap_id)
    if roadmap is None:
        return json.dumps({"success": False, "message": "No matching roadmap found."})
    content = roadmap.get("content")
    steps = roadmap.get("steps") or (content.get("steps", []) if isinstance(content, dict) else [])
    return json.dumps({
        "success": True,
        "action": "render_roadmap",
        "roadmap": {
            "id": str(roadmap.get("id") or roadmap.get("_id") or roadmap_id or ""),
            "title": roadmap.get("title", "Untitled"),
            "progress": roadmap.get("progress", 0),
            "steps": steps if isinstance(steps, list) else [],
        },
    }, ensure_ascii=False)


def _find_roadmap(roadmaps, roadmap_id: str) -> Optional[dict]:
    candidates = []
    current = roadmaps.get("currentRoadmap")
    if isinstance(current, dict):
        candidates.append(current)
    candidates.extend(r for r in roadmaps.get("items") or [] if isinstance(r, dict))
    if not roadmap_id:
        return candidates[0] if candidates else None
    for r in candidates:
        if str(r.get("id") or r.get("_id")) == str(roadmap_id):
            return r
    return None


ALL_TOOLS = [navigate_to, open_roadmap, open_quest, get_available_routes, render_roadmap]
TOOL_MAP = {fn.__name__: fn for fn in ALL_TOOLS}


# ── Schemas ──

def build_tool_schemas(tools: list) -> list[dict]:
    """Convert tool functions to OpenAI-compatible tool schemas."""
    schemas = []
    for fn in tools:
        sig = inspect.signature(fn)
        params = {}
        required = []
        for name, hint in fn.__annotations__.items():
            if name in ("return", "context"):
                continue
            ptype = "string"
            if hint == int:
                ptype = "integer"
            elif hint == bool:
                ptype = "boolean"
            params[name] = {"type": ptype, "description": f"The {name} parameter"}
            if sig.parameters[name].default is inspect.Parameter.empty:
                required.append(name)
        if fn is navigate_to:
            params["destination"]["enum"] = list(VALID_ROUTES)

        schemas.append({
            "type": "function",
            "function": {
                "name": fn.__name__,
                "description": " ".join((fn.__doc__ or "").split()),
                "parameters": {
                    "type": "object",
                    "properties": params,
                    "required": required,
                },
            },
        })
    return schemas


def execute_tool(name: str, arguments: dict, context: AgentContext = None) -> str:
    """Execute a tool function by name. Errors come back as text for the model."""
    fn = TOOL_MAP.get(name)
    if not fn:
        return f"Error: unknown tool '{name}'"
    allowed = set(inspect.signature(fn).parameters) - {"context"}
    kwargs = {k: v for k, v in (arguments or {}).items() if k in allowed}
    try:
        return fn(**kwargs, context=context)
    except Exception as e:
        logger.warning("Tool %s failed: %s", name, e)
        return f"Error executing {name}: {e}"
