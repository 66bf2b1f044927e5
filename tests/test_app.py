import pytest
from fastapi.testclient import TestClient

from conftest import FakeClassifier, build_controller
from stockbot import formatter
from stockbot.app import create_app
from stockbot.config import BASE_DIR, Settings
from stockbot.models import ConfirmSearch
from stockbot.transport import MessageGate

NOW = 1_700_000_000.0


def make_settings(**overrides):
    values = dict(
        gemini_api_key="",
        gemini_model="gemini-2.0-flash",
        tiny_api_token="",
        tiny_api_url="https://tiny.test/api2",
        http_timeout_seconds=5.0,
        display_threshold=1,
        freshness_window_seconds=300,
        stock_lookup_concurrency=2,
        results_snapshot_path=None,
        prompts_dir=BASE_DIR / "prompts",
        wpp_base_url="",
        wpp_session="test",
        wpp_token="",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def classifier():
    return FakeClassifier(ConfirmSearch(action="confirm_search", term="cuba"))


@pytest.fixture
def client(store, classifier, cuba_catalog):
    controller = build_controller(store, classifier, cuba_catalog)
    gate = MessageGate(freshness_window_seconds=300, clock=lambda: NOW)
    app = create_app(settings=make_settings(), controller=controller, gate=gate)
    with TestClient(app) as test_client:
        yield test_client


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "sessions": 0}


def test_inbound_message_is_answered(client, store):
    payload = {"conversation_id": "5511999990000@c.us", "body": "cuba", "timestamp_seconds": NOW - 5}
    response = client.post("/api/messages", json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["handled"] is True
    assert body["reply"] == formatter.confirm_prompt("cuba")
    assert store.get("5511999990000@c.us").state.value == "AWAITING_CONFIRMATION"


def test_group_message_is_dropped(client, classifier):
    payload = {"conversation_id": "123@g.us", "body": "cuba", "timestamp_seconds": NOW, "is_group": True}
    body = client.post("/api/messages", json=payload).json()
    assert body == {"conversation_id": "123@g.us", "handled": False, "reason": "group", "reply": None}
    assert classifier.messages == []


def test_chat_flow_and_session_view(client, cuba_catalog):
    first = client.post("/api/chat", json={"message": "cuba"}).json()
    session_id = first["session_id"]
    assert first["state"] == "AWAITING_CONFIRMATION"

    second = client.post("/api/chat", json={"session_id": session_id, "message": "sim"}).json()
    assert second["state"] == "SEARCH_MODE"
    assert second["answer_text"] == formatter.narrow_prompt("cuba", 5)
    assert cuba_catalog.terms == ["cuba"]

    view = client.get(f"/api/sessions/{session_id}").json()
    assert view == {
        "conversation_id": session_id,
        "state": "SEARCH_MODE",
        "pending_term": None,
        "result_count": 5,
        "history_depth": 0,
    }


def test_chat_rejects_empty_message(client):
    assert client.post("/api/chat", json={"message": "  "}).status_code == 400


def test_unknown_session_is_404(client):
    assert client.get("/api/sessions/nobody").status_code == 404
