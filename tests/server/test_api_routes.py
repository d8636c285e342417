"""Tests for the conduit HTTP and WebSocket routes."""

import json
from concurrent.futures import ThreadPoolExecutor

from conftest import MOUSE_MOVE, MockLLM, answer, tool_call
from fastapi.testclient import TestClient

from conduit.config.schema import ConduitConfig
from conduit.server.app import create_app

HANDSHAKE = {
    "type": "handshake",
    "client": "desktop-app",
    "version": "2.0.0",
    "tools": [MOUSE_MOVE.to_dict()],
}


def _client(responses=None) -> TestClient:
    config = ConduitConfig()
    return TestClient(create_app(config, llm=MockLLM(responses or [])))


def _sse_events(body: str) -> list[tuple[str, dict]]:
    events = []
    for block in body.replace("\r\n", "\n").split("\n\n"):
        name, data = None, None
        for line in block.splitlines():
            if line.startswith("event:"):
                name = line.split(":", 1)[1].strip()
            elif line.startswith("data:"):
                data = json.loads(line.split(":", 1)[1].strip())
        if name:
            events.append((name, data))
    return events


def test_health_endpoint():
    with _client() as client:
        response = client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["connected"] is False


def test_status_without_executor():
    with _client() as client:
        data = client.get("/api/status").json()

    assert data == {"connected": False, "sessions": [], "toolCount": 0, "pendingCommands": 0}


def test_executor_handshake_registers_tools():
    with _client() as client:
        with client.websocket_connect("/connect") as ws:
            ws.send_json(HANDSHAKE)
            ack = ws.receive_json()

            assert ack["type"] == "handshake_ack"
            assert ack["toolsRegistered"] == 1

            status = client.get("/api/status").json()
            assert status["connected"] is True
            assert status["sessions"][0]["clientVersion"] == "2.0.0"

            tool_ids = [t["id"] for t in client.get("/api/tools").json()["tools"]]
            assert "mouse_move" in tool_ids
            assert "web_search" in tool_ids

            ws.send_json({"type": "ping"})
            assert ws.receive_json()["type"] == "pong"


def test_command_round_trip_through_executor():
    with _client() as client:
        with client.websocket_connect("/connect") as ws:
            ws.send_json(HANDSHAKE)
            ws.receive_json()

            with ThreadPoolExecutor(max_workers=1) as pool:
                future = pool.submit(
                    client.post, "/api/command", json={"type": "mouse_move", "x": 5, "y": 6}
                )
                command = ws.receive_json()
                assert command["type"] == "mouse_move"
                ws.send_json(
                    {"type": "success", "message": "Moved", "commandId": command["commandId"]}
                )
                response = future.result(timeout=10)

    assert response.status_code == 200
    assert response.json()["message"] == "Moved"


def test_command_without_executor_is_503():
    with _client() as client:
        response = client.post("/api/command", json={"type": "mouse_move", "x": 1, "y": 1})

    assert response.status_code == 503
    assert response.json()["detail"] == "No client connected"


def test_command_requires_type():
    with _client() as client:
        response = client.post("/api/command", json={"x": 1})

    assert response.status_code == 400


def test_chat_returns_execution_log():
    with _client([answer("Hello! How can I help?")]) as client:
        response = client.post("/api/chat", json={"message": "Hi"})

    assert response.status_code == 200
    data = response.json()
    assert data["agentName"] == "Orchestrator"
    assert data["agentId"] == "orchestrator-agent"
    assert data["status"] == "success"
    assert data["finalResponse"] == "Hello! How can I help?"
    assert data["terminationReason"] == "model_concluded"
    assert len(data["iterations"]) == 1


def test_chat_with_agent_and_history():
    llm_responses = [answer("It is at (0, 0).")]
    with _client(llm_responses) as client:
        response = client.post(
            "/api/chat",
            json={
                "message": "Where is the mouse?",
                "agentId": "desktop-automation-agent",
                "conversationHistory": [{"role": "user", "content": "hello"}],
            },
        )

    assert response.json()["agentName"] == "Desktop Automation Agent"


def test_chat_remote_tool_without_executor_reports_error():
    with _client([tool_call("mouse_move", {"x": 1, "y": 1})]) as client:
        client.app.state.engine.tools.register([MOUSE_MOVE])
        response = client.post(
            "/api/chat", json={"message": "Move", "agentId": "desktop-automation-agent"}
        )

    data = response.json()
    assert data["status"] == "error"
    assert data["error"] == "No client connected"


def test_chat_unknown_agent_is_404():
    with _client() as client:
        response = client.post("/api/chat", json={"message": "Hi", "agentId": "nope"})

    assert response.status_code == 404


def test_chat_stream_emits_events_and_complete():
    with _client([answer("Streaming hello")]) as client:
        response = client.post("/api/chat", json={"message": "Hi", "stream": True})

    assert response.status_code == 200
    assert "text/event-stream" in response.headers["content-type"]
    events = _sse_events(response.text)
    names = [name for name, _ in events]
    assert names[0] == "step_start"
    assert "final_response" in names
    assert names[-1] == "complete"
    assert events[-1][1]["finalResponse"] == "Streaming hello"


def test_event_observers_see_chat_events():
    with _client([answer("Observed")]) as client:
        with client.websocket_connect("/ws/events") as ws:
            client.post("/api/chat", json={"message": "Hi"})

            received = [ws.receive_json() for _ in range(4)]

    assert [e["type"] for e in received] == [
        "step_start",
        "thought",
        "step_complete",
        "final_response",
    ]
    assert received[-1]["finalResponse"] == "Observed"
    assert received[0]["agentId"] == "orchestrator-agent"


def test_list_and_get_agents():
    with _client() as client:
        agents = client.get("/api/agents").json()["agents"]
        detail = client.get("/api/agents/web-research-agent")
        missing = client.get("/api/agents/nope")

    ids = [a["id"] for a in agents]
    assert "orchestrator-agent" in ids
    assert len(ids) == 6
    assert detail.json()["agent"]["maxIterations"] == 8
    assert missing.status_code == 404
