"""
Core package — turn orchestration for the companion.

Structure:
    types.py        — Immutable turn contracts (Message, RoutingDecision, ...)
    errors.py       — Error taxonomy and turn error codes
    actions.py      — Action extraction from handler responses
    streaming.py    — SSE event framing and the incremental decoder
    metrics.py      — Rolling per-turn metrics
    orchestrator.py — The turn state machine and both delivery protocols

Usage:
    from core.orchestrator import Orchestrator, OrchestratorSettings
    from core.types import TurnRequest

orchestrator.py is not re-exported here: it depends on agents.prompts, which
itself imports core.types.
"""
