"""
Tests for the companion HTTP surface: buffered JSON, SSE streaming,
conversation lookup and health.

The app is assembled without its lifespan so no inference backend is built;
app.state is populated directly with stub-backed components.
"""

import pytest

from conftest import StubHandler, StubRouter


@pytest.fixture
def app(store, make_orchestrator):
    from fastapi import FastAPI
    from dependencies import TurnLocks
    from routes import register_routes

    app = FastAPI()
    register_routes(app)
    app.state.store = store
    app.state.turn_locks = TurnLocks()
    app.state.orchestrator = make_orchestrator(router=StubRouter("learning", 0.9), boundary=store)
    return app


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient
    return TestClient(app)


def _events(response):
    from core.streaming import decode_stream
    return list(decode_stream([response.content]))


class TestValidation:
    """Rejected requests never reach the orchestrator."""

    def test_missing_message_is_422(self, client):
        assert client.post("/api/companion", json={}).status_code == 422

    def test_non_string_message_is_422(self, client):
        assert client.post("/api/companion", json={"message": 42}).status_code == 422

    def test_unsupported_language_is_422(self, client):
        r = client.post("/api/companion", json={"message": "hi", "language": "fr"})
        assert r.status_code == 422

    def test_oversized_message_is_422(self, client):
        from config import MAX_MESSAGE_LENGTH

        r = client.post("/api/companion", json={"message": "x" * (MAX_MESSAGE_LENGTH + 1)})
        assert r.status_code == 422

    def test_blank_message_is_400(self, client, app):
        r = client.post("/api/companion", json={"message": "   "})
        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert body["error"]["code"] == "invalid_request"
        assert body["error"]["requestId"].startswith("req_")
        assert app.state.orchestrator.metrics.summary()["total_turns"] == 0

    def test_unknown_conversation_is_404(self, client):
        r = client.post("/api/companion", json={"message": "hi", "conversationId": "nope"})
        assert r.status_code == 404
        assert r.json()["error"]["code"] == "conversation_not_found"

    def test_someone_elses_conversation_is_404(self, client, store):
        conv = store.create("owner")
        r = client.post("/api/companion", json={"message": "hi", "conversationId": conv["id"]},
                        headers={"X-User-Id": "intruder"})
        assert r.status_code == 404

    def test_not_ready_is_503(self, client, app):
        app.state.orchestrator = None
        assert client.post("/api/companion", json={"message": "hi"}).status_code == 503


class TestBufferedTurn:
    """POST /api/companion without streaming."""

    def test_success_body(self, client):
        r = client.post("/api/companion", json={"message": "teach me recursion"})
        assert r.status_code == 200
        body = r.json()
        assert body["success"] is True
        assert body["response"]["content"] == "learning answer"
        assert body["response"]["agent"] == "learning"
        assert body["routing"]["agent"] == "learning"
        assert body["conversationId"] is None

    def test_signed_in_user_gets_a_new_conversation(self, client, store):
        r = client.post("/api/companion", json={"message": "what is a stack?"},
                        headers={"X-User-Id": "u1"})
        conv_id = r.json()["conversationId"]
        assert conv_id
        stored = store.get(conv_id, "u1")
        assert [m["role"] for m in stored["messages"]] == ["user", "assistant"]

    def test_existing_conversation_is_continued(self, client, store):
        conv = store.create("u1")
        for text in ("first", "second"):
            client.post("/api/companion", json={"message": text, "conversationId": conv["id"]},
                        headers={"X-User-Id": "u1"})
        assert len(store.get(conv["id"])["messages"]) == 4

    def test_handler_failure_is_500(self, client, app, make_orchestrator, make_registry, store):
        failing = StubHandler("learning", error=RuntimeError("model timeout"))
        app.state.orchestrator = make_orchestrator(
            router=StubRouter("learning", 0.9), registry=make_registry(learning=failing), boundary=store)

        r = client.post("/api/companion", json={"message": "teach me", "language": "bn"})
        assert r.status_code == 500
        error = r.json()["error"]
        assert error["code"] == "handler_failed"
        assert "model timeout" not in error["message"]
        assert "timestamp" in error

    def test_failed_turn_leaves_no_conversation(self, client, app, make_orchestrator, make_registry, store):
        failing = StubHandler("general", error=RuntimeError("model timeout"))
        app.state.orchestrator = make_orchestrator(
            router=StubRouter("general", 0.9), registry=make_registry(general=failing), boundary=store)

        r = client.post("/api/companion", json={"message": "hi"}, headers={"X-User-Id": "u1"})
        assert r.status_code == 500
        assert store.list_for_user("u1") == []
        assert store._reserved == {}

    def test_client_history_is_used(self, client, app, make_orchestrator, make_registry, store):
        handler = StubHandler("general")
        app.state.orchestrator = make_orchestrator(registry=make_registry(general=handler), boundary=store)

        client.post("/api/companion", json={
            "message": "and now?",
            "history": [{"role": "user", "content": "hi"}, {"role": "assistant", "content": "hello"}],
        })
        _message, context = handler.calls[0]
        assert [m.content for m in context.history] == ["hi", "hello"]


class TestStreamingTurn:
    """POST /api/companion as server-sent events."""

    def test_stream_query_param(self, client):
        r = client.post("/api/companion?stream=true", json={"message": "teach me recursion"})
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        assert r.headers["cache-control"] == "no-cache"

        events = _events(r)
        types = [e.type.value for e in events]
        assert types[:2] == ["status", "agent_start"]
        assert types[-1] == "done"
        content = "".join(e.payload["content"] for e in events if e.type.value == "content_delta")
        assert content == "learning answer"

    def test_accept_header_selects_streaming(self, client):
        r = client.post("/api/companion", json={"message": "hi"},
                        headers={"Accept": "text/event-stream"})
        assert r.headers["content-type"].startswith("text/event-stream")

    def test_stream_false_overrides_accept(self, client):
        r = client.post("/api/companion?stream=false", json={"message": "hi"},
                        headers={"Accept": "text/event-stream"})
        assert r.json()["success"] is True

    def test_streamed_failure_ends_with_error_event(self, client, app, make_orchestrator, make_registry, store):
        failing = StubHandler("learning", error=RuntimeError("boom"))
        app.state.orchestrator = make_orchestrator(
            router=StubRouter("learning", 0.9), registry=make_registry(learning=failing), boundary=store)

        events = _events(client.post("/api/companion?stream=true", json={"message": "x"}))
        assert [e.type.value for e in events] == ["status", "agent_start", "error"]
        assert events[-1].payload["code"] == "handler_failed"

    def test_streamed_failure_leaves_no_conversation(self, client, app, make_orchestrator, make_registry,
                                                     store):
        failing = StubHandler("learning", error=RuntimeError("boom"))
        app.state.orchestrator = make_orchestrator(
            router=StubRouter("learning", 0.9), registry=make_registry(learning=failing), boundary=store)

        client.post("/api/companion?stream=true", json={"message": "x"}, headers={"X-User-Id": "u1"})
        assert store.list_for_user("u1") == []
        assert store._reserved == {}

    def test_done_carries_conversation_id(self, client, store):
        r = client.post("/api/companion?stream=true", json={"message": "hi"},
                        headers={"X-User-Id": "u1"})
        done = _events(r)[-1]
        assert done.payload["conversationId"]
        assert len(store.get(done.payload["conversationId"])["messages"]) == 2


class TestTurnLocks:
    """Per-conversation serialization."""

    def test_locks_are_dropped_after_turns(self, client, app, store):
        for _ in range(3):
            client.post("/api/companion", json={"message": "hi"}, headers={"X-User-Id": "u1"})
        conv = store.create("u1")
        client.post("/api/companion?stream=true", json={"message": "hi", "conversationId": conv["id"]},
                    headers={"X-User-Id": "u1"})
        assert len(app.state.turn_locks) == 0

    @pytest.mark.asyncio
    async def test_turns_on_one_conversation_run_one_at_a_time(self):
        import asyncio
        from dependencies import TurnLocks

        locks = TurnLocks()
        order = []

        async def turn(name):
            async with locks.for_conversation("c1"):
                order.append(f"{name} start")
                await asyncio.sleep(0)
                order.append(f"{name} end")

        await asyncio.gather(turn("a"), turn("b"))
        assert order == ["a start", "a end", "b start", "b end"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_lock_is_dropped_when_the_turn_raises(self):
        from dependencies import TurnLocks

        locks = TurnLocks()
        with pytest.raises(RuntimeError):
            async with locks.for_conversation("c1"):
                raise RuntimeError("boom")
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_anonymous_turns_take_no_lock(self):
        from dependencies import TurnLocks

        locks = TurnLocks()
        async with locks.for_conversation(None):
            assert len(locks) == 0


class TestConversationLookup:
    """GET /api/companion."""

    def test_requires_user(self, client):
        r = client.get("/api/companion")
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "unauthenticated"

    def test_lists_recent_conversations(self, client, store):
        store.create("u1")
        store.create("u2")
        r = client.get("/api/companion", headers={"X-User-Id": "u1"})
        assert r.status_code == 200
        assert len(r.json()["conversations"]) == 1

    def test_get_one_conversation(self, client, store):
        conv = store.create("u1")
        r = client.get("/api/companion", params={"conversationId": conv["id"]},
                       headers={"X-User-Id": "u1"})
        assert r.json()["conversation"]["id"] == conv["id"]

    def test_get_missing_conversation_is_404(self, client):
        r = client.get("/api/companion", params={"conversationId": "nope"},
                       headers={"X-User-Id": "u1"})
        assert r.status_code == 404


class TestHealth:

    def test_health_ready(self, client):
        assert client.get("/health").json() == {"status": "ok", "ready": True}

    def test_companion_health_reports_handlers_and_metrics(self, client):
        client.post("/api/companion", json={"message": "hi"})
        body = client.get("/api/companion/health").json()
        assert body["status"] == "healthy"
        assert set(body["handlers"]) == {"general", "learning", "task", "code", "roadmap"}
        assert body["settings"]["confidenceThreshold"] == 0.5
        assert body["models"]["router"] == "gpt-4o-mini"
        assert body["metrics"]["total_turns"] == 1

    def test_companion_health_while_initializing(self, client, app):
        app.state.orchestrator = None
        body = client.get("/api/companion/health").json()
        assert body["status"] == "initializing"
        assert body["ready"] is False
