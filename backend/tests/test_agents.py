"""
Tests for the capability handlers.
Tests prompt assembly, the tool-calling round, per-handler metadata, and the registry.
"""

import json

import pytest

from conftest import StubHandler, chat_reply


def _context(**kwargs):
    from core.types import AgentContext
    return AgentContext(**kwargs)


def _tool_call(name, arguments, call_id="call_1"):
    return {"id": call_id, "type": "function",
            "function": {"name": name, "arguments": json.dumps(arguments)}}


class TestBaseAgent:
    """Shared handler scaffolding."""

    def test_agent_definition_structure(self):
        """AgentDefinition should carry the model settings."""
        from agents.base import AgentDefinition
        from core.types import AgentTag

        defn = AgentDefinition(tag=AgentTag.CODE, model_key="code", max_tokens=4096,
                               temperature=0.3, can_use_tools=True)
        assert defn.tag is AgentTag.CODE
        assert defn.model_key == "code"
        assert defn.can_use_tools is True

    def test_register_requires_agent_tag(self):
        from agents.base import BaseAgent, register_agent_class

        class Untagged(BaseAgent):
            AGENT_TAG = "code"

        with pytest.raises(ValueError):
            register_agent_class(Untagged)

    def test_format_history_drops_empty_and_maps_roles(self):
        from agents.base import BaseAgent
        from core.types import Message, Role

        history = (
            Message(role=Role.USER, content="teach me loops"),
            Message(role=Role.ASSISTANT, content="   "),
            Message(role=Role.ASSISTANT, content="A loop repeats."),
        )
        assert BaseAgent.format_history(history) == [
            {"role": "user", "content": "teach me loops"},
            {"role": "assistant", "content": "A loop repeats."},
        ]
        assert BaseAgent.format_history(None) == []

    @pytest.mark.parametrize("message,expected", [
        (None, ""),
        ("plain", "plain"),
        ({"content": "text"}, "text"),
        ({"content": [{"type": "text", "text": "a"}, "b", 3]}, "ab"),
        ({"content": {"text": "nested"}}, "nested"),
        ({"content": None}, ""),
    ])
    def test_extract_content_shapes(self, message, expected):
        from agents.base import BaseAgent

        assert BaseAgent.extract_content(message) == expected

    def test_build_messages_layout(self, fake_inference):
        from agents.learning import LearningAgent
        from core.types import Language, Message, Role

        agent = LearningAgent(fake_inference)
        ctx = _context(history=(Message(role=Role.USER, content="earlier"),), language=Language.BN)
        messages = agent.build_messages("what is a stack?", ctx)

        assert messages[0]["role"] == "system"
        assert "Respond in Bengali" in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "earlier"}
        assert messages[-1] == {"role": "user", "content": "what is a stack?"}

    def test_context_summary_is_appended_to_prompt(self, fake_inference):
        from agents.task import TaskAgent
        from core.types import DomainSummaries

        summaries = DomainSummaries.from_dict({"tasks": {"total": 3, "pending": 2, "completed": 1}})
        prompt = TaskAgent(fake_inference).build_system_prompt(_context(domain_summaries=summaries))
        assert "## User Context" in prompt
        assert "2 pending" in prompt

    def test_no_summary_keeps_bare_prompt(self, fake_inference):
        from agents.task import TaskAgent
        from agents.prompts import TASK_PROMPT

        assert TaskAgent(fake_inference).build_system_prompt(_context()) == TASK_PROMPT


class TestToolRound:
    """The bounded tool-calling loop."""

    @pytest.mark.asyncio
    async def test_plain_answer_has_no_tool_results(self, fake_inference):
        from agents.general import GeneralAgent

        fake_inference.call_llm.return_value = chat_reply("Hi there!")
        response = await GeneralAgent(fake_inference).process("hello", _context())

        assert response.content == "Hi there!"
        assert "tool_results" not in response.metadata
        assert response.metadata["agent"] == "general"

    @pytest.mark.asyncio
    async def test_navigation_tool_becomes_an_action(self, fake_inference):
        from agents.task import TaskAgent
        from core.actions import extract_actions

        fake_inference.call_llm.side_effect = [
            chat_reply(None, [_tool_call("navigate_to", {"destination": "tasks"})]),
            chat_reply("Opening your tasks."),
        ]
        response = await TaskAgent(fake_inference).process("show my tasks", _context())

        assert response.content == "Opening your tasks."
        record = response.metadata["tool_results"][0]
        assert record["tool_name"] == "navigate_to"
        assert record["success"] is True
        actions = extract_actions(response)
        assert [(a.kind, a.params["route"]) for a in actions] == [("navigate", "/tasks")]

        second_call_messages = fake_inference.call_llm.call_args_list[1].args[1]
        assert second_call_messages[-1]["role"] == "tool"
        assert second_call_messages[-1]["tool_call_id"] == "call_1"

    @pytest.mark.asyncio
    async def test_bad_tool_arguments_are_reported_not_raised(self, fake_inference):
        from agents.code import CodeAgent

        bad_call = {"id": "call_x", "function": {"name": "navigate_to", "arguments": "{not json"}}
        fake_inference.call_llm.side_effect = [
            chat_reply(None, [bad_call, _tool_call("delete_everything", {}, "call_y")]),
            chat_reply("Here is the fix."),
        ]
        response = await CodeAgent(fake_inference).process("fix my bug", _context())

        records = response.metadata["tool_results"]
        assert [r["success"] for r in records] == [False, False]
        assert "unknown tool" in records[1]["error"]
        assert response.content == "Here is the fix."

    @pytest.mark.asyncio
    async def test_tool_round_is_bounded(self, fake_inference):
        from agents.base import MAX_TOOL_ROUNDS
        from agents.general import GeneralAgent

        looping = chat_reply(None, [_tool_call("navigate_to", {"destination": "faq"})])
        fake_inference.call_llm.side_effect = [looping] * MAX_TOOL_ROUNDS + [chat_reply("Done.")]
        response = await GeneralAgent(fake_inference).process("help", _context())

        assert response.content == "Done."
        assert fake_inference.call_llm.await_count == MAX_TOOL_ROUNDS + 1
        assert fake_inference.call_llm.call_args.kwargs["tools"] is None

    @pytest.mark.asyncio
    async def test_learning_handler_sends_no_tools(self, fake_inference):
        from agents.learning import LearningAgent

        await LearningAgent(fake_inference).process("explain recursion", _context())
        call = fake_inference.call_llm.call_args
        assert call.args[0] == "learning"
        assert call.kwargs["tools"] is None

    @pytest.mark.asyncio
    async def test_inference_errors_propagate(self, fake_inference):
        """Handlers do not swallow model failures."""
        from agents.code import CodeAgent

        fake_inference.call_llm.side_effect = ConnectionError("backend down")
        with pytest.raises(ConnectionError):
            await CodeAgent(fake_inference).process("debug this", _context())


class TestTools:
    """navigate_to and render_roadmap."""

    def test_navigate_to_known_destination(self):
        from agents.tools import navigate_to

        result = json.loads(navigate_to("Dashboard", reason="check progress"))
        assert result["success"] is True
        assert result["route"] == "/dashboard"
        assert result["reason"] == "check progress"

    def test_navigate_to_unknown_destination(self):
        from agents.tools import navigate_to

        result = json.loads(navigate_to("admin"))
        assert result["success"] is False
        assert "action" not in result

    def test_navigate_message_is_localized(self):
        from agents.tools import navigate_to
        from core.types import Language

        en = json.loads(navigate_to("tasks", context=_context()))["message"]
        bn = json.loads(navigate_to("tasks", context=_context(language=Language.BN)))["message"]
        assert en != bn

    def test_render_roadmap_uses_current_roadmap(self):
        from agents.tools import render_roadmap
        from core.types import DomainSummaries

        summaries = DomainSummaries.from_dict({"roadmaps": {
            "total": 2,
            "currentRoadmap": {"id": "r1", "title": "Python Basics", "progress": 40},
            "items": [{"id": "r2", "title": "Web Dev"}],
        }})
        ctx = _context(domain_summaries=summaries)

        current = json.loads(render_roadmap(context=ctx))
        assert current["roadmap"]["title"] == "Python Basics"
        assert current["roadmap"]["progress"] == 40
        assert json.loads(render_roadmap("r2", context=ctx))["roadmap"]["title"] == "Web Dev"
        assert json.loads(render_roadmap("r9", context=ctx))["success"] is False

    def test_tool_schemas_hide_context(self):
        from agents.tools import VALID_ROUTES, build_tool_schemas, navigate_to

        schema = build_tool_schemas([navigate_to])[0]["function"]
        props = schema["parameters"]["properties"]
        assert "context" not in props
        assert props["destination"]["enum"] == list(VALID_ROUTES)
        assert schema["parameters"]["required"] == ["destination"]

    def test_execute_tool_ignores_unexpected_arguments(self):
        from agents.tools import execute_tool

        result = json.loads(execute_tool("navigate_to", {"destination": "faq", "speed": "fast"}))
        assert result["route"] == "/faq"

    def test_execute_tool_missing_argument(self):
        from agents.tools import execute_tool

        assert execute_tool("navigate_to", {}).startswith("Error")

    def test_execute_tool_non_string_destination(self):
        from agents.tools import execute_tool

        result = json.loads(execute_tool("navigate_to", {"destination": 5}))
        assert result["success"] is False

    def test_execute_tool_turns_any_failure_into_text(self, monkeypatch):
        from agents import tools

        def broken(context=None):
            raise KeyError("steps")

        monkeypatch.setitem(tools.TOOL_MAP, "broken", broken)
        assert tools.execute_tool("broken", {}).startswith("Error executing broken:")

    def test_render_roadmap_with_string_content(self):
        from agents.tools import render_roadmap
        from core.types import DomainSummaries

        summaries = DomainSummaries.from_dict({"roadmaps": {
            "total": 1,
            "currentRoadmap": {"id": "r1", "title": "Go", "content": "free-form notes"},
        }})
        result = json.loads(render_roadmap(context=_context(domain_summaries=summaries)))
        assert result["success"] is True
        assert result["roadmap"]["steps"] == []

    def test_open_roadmap_payload(self):
        from agents.tools import open_roadmap

        result = json.loads(open_roadmap("r42", title="Data Structures"))
        assert result["action"] == "navigate"
        assert result["route"] == "/roadmaps/r42"
        assert result["destination"] == "roadmap_detail"
        assert "Data Structures" in result["message"]

    def test_open_quest_payload(self):
        from agents.tools import open_quest

        result = json.loads(open_quest("q7"))
        assert result["route"] == "/quests/q7"
        assert result["destination"] == "quest_detail"

    def test_open_without_id_is_not_an_action(self):
        from agents.tools import open_quest, open_roadmap

        for result in (json.loads(open_roadmap("")), json.loads(open_quest("  "))):
            assert result["success"] is False
            assert "action" not in result

    def test_available_routes_lists_every_page(self):
        from agents.tools import VALID_ROUTES, get_available_routes

        result = json.loads(get_available_routes())
        assert [r["path"] for r in result["routes"]] == list(VALID_ROUTES.values())
        assert "action" not in result

    def test_open_roadmap_action_is_extracted(self):
        from agents.tools import execute_tool
        from core.actions import extract_actions
        from core.types import HandlerResponse

        record = {"tool_name": "open_roadmap", "success": True,
                  "result": execute_tool("open_roadmap", {"roadmap_id": "r1"})}
        actions = extract_actions(HandlerResponse(content="", metadata={"tool_results": [record]}))
        assert actions[0].params["route"] == "/roadmaps/r1"


class TestMessageCatalog:
    """Localized text in agents.prompts.MESSAGES."""

    def test_error_entries_match_turn_error_codes(self):
        from agents.prompts import MESSAGES, get_message
        from core.errors import HANDLER_FAILED, INTERNAL_ERROR, PERSISTENCE_FAILED

        codes = {HANDLER_FAILED, PERSISTENCE_FAILED, INTERNAL_ERROR}
        assert set(MESSAGES["errors"]) == codes
        for code in codes:
            for language in ("en", "bn"):
                assert get_message(f"errors.{code}", language) != f"errors.{code}"

    def test_unknown_key_falls_back_to_the_key(self):
        from agents.prompts import get_message

        assert get_message("greetings.morning", "bn") == "greetings.morning"


class TestHandlerMetadata:
    """Handler-specific metadata."""

    @pytest.mark.parametrize("message,expected", [
        ("hello there", "greeting"),
        ("thanks a lot", "gratitude"),
        ("I'm confused", "help"),
        ("I'm so tired", "support"),
        ("what's up with the weather", "general"),
    ])
    def test_general_response_type(self, message, expected):
        from agents.general import response_type

        assert response_type(message) == expected

    def test_general_prompt_includes_user_name(self, fake_inference):
        from agents.general import GeneralAgent
        from core.types import UserIdentity

        prompt = GeneralAgent(fake_inference).build_system_prompt(_context(user=UserIdentity("u1", "Rafi")))
        assert "Rafi" in prompt

    def test_learning_topic(self):
        from agents.learning import extract_topic

        assert extract_topic("teach me Recursion") == "recursion"
        assert extract_topic("what is love") is None

    @pytest.mark.parametrize("message,language,query", [
        ("fix this python error", "python", "debug"),
        ("review my React component", "javascript", "review"),
        ("write a SQL join example", "sql", "generate"),
        ("hmm", None, "general"),
    ])
    def test_code_metadata(self, fake_inference, message, language, query):
        from agents.code import CodeAgent

        meta = CodeAgent(fake_inference).metadata(message, _context())
        assert meta == {"code_language": language, "type": query}

    def test_roadmap_metadata(self, fake_inference):
        from agents.roadmap import RoadmapAgent
        from core.types import DomainSummaries

        agent = RoadmapAgent(fake_inference)
        summaries = DomainSummaries.from_dict({"roadmaps": {"currentRoadmap": {"title": "DSA"}}})
        assert agent.metadata("next?", _context(domain_summaries=summaries)) == {"roadmap": "DSA"}
        assert agent.metadata("next?", _context()) == {}

    def test_only_roadmap_can_render_roadmaps(self, fake_inference):
        from agents.general import GeneralAgent
        from agents.roadmap import RoadmapAgent

        def names(agent):
            return [s["function"]["name"] for s in agent._tool_schemas]

        assert names(RoadmapAgent(fake_inference)) == ["render_roadmap", "open_roadmap", "navigate_to"]
        assert "render_roadmap" not in names(GeneralAgent(fake_inference))

    def test_navigation_tools_per_handler(self, fake_inference):
        from agents.general import GeneralAgent
        from agents.task import TaskAgent

        def names(agent):
            return [s["function"]["name"] for s in agent._tool_schemas]

        assert names(GeneralAgent(fake_inference)) == [
            "navigate_to", "get_available_routes", "open_roadmap", "open_quest"]
        assert names(TaskAgent(fake_inference)) == ["navigate_to", "get_available_routes"]


class TestHandlerRegistry:
    """Tag-to-handler lookup."""

    def test_build_registry_has_all_five_handlers(self, fake_inference):
        from agents import build_registry
        from core.types import AgentTag

        registry = build_registry(fake_inference)
        assert set(registry.tags()) == set(AgentTag)
        for tag in AgentTag:
            assert registry.get(tag).tag is tag

    def test_general_is_required(self):
        from agents.registry import HandlerRegistry

        with pytest.raises(ValueError):
            HandlerRegistry([StubHandler("code")])

    def test_duplicate_tags_rejected(self):
        from agents.registry import HandlerRegistry

        with pytest.raises(ValueError):
            HandlerRegistry([StubHandler("general"), StubHandler("general")])

    def test_resolve_falls_back_to_general(self):
        from agents.registry import HandlerRegistry
        from core.types import AgentTag

        general = StubHandler("general")
        registry = HandlerRegistry([general, StubHandler("code")])
        assert registry.resolve(AgentTag.TASK) == (AgentTag.GENERAL, general)
        assert registry.resolve(AgentTag.CODE)[0] is AgentTag.CODE
        assert AgentTag.TASK not in registry
        assert len(registry) == 2
