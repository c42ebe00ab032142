"""
Realtime bridge tests and the WebSocket feed end to end
"""
import pytest
from starlette.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from handoff.config import Settings
from handoff.main import create_app
from handoff.services import seeding
from handoff.services.realtime import Change, RealtimeBridge, INSERT, UPDATE, DELETE


SCHEMA = {"comments": ["id", "project_id", "deliverable_id", "content"], "shared_files": ["id", "project_id"]}


@pytest.fixture()
def bridge():
    return RealtimeBridge(SCHEMA)


def _comment(project_id="p1", **extra):
    return {"id": "c1", "project_id": project_id, "deliverable_id": "d1", "content": "hi", **extra}


async def test_delivers_only_matching_rows(bridge):
    received = []
    bridge.subscribe("comments", "project_id", "p1", received.append)

    await bridge.publish(Change(INSERT, "comments", new=_comment("p1")))
    await bridge.publish(Change(INSERT, "comments", new=_comment("p2")))
    await bridge.publish(Change(INSERT, "shared_files", new={"id": "f1", "project_id": "p1"}))

    assert len(received) == 1
    assert received[0].new["project_id"] == "p1"


async def test_delete_matches_on_old_row(bridge):
    received = []
    bridge.subscribe("comments", "project_id", "p1", received.append)

    await bridge.publish(Change(DELETE, "comments", old=_comment("p1")))

    assert [c.event for c in received] == [DELETE]


async def test_delivery_order_is_publish_order(bridge):
    received = []
    bridge.subscribe("comments", "project_id", "p1", received.append)

    for event in (INSERT, UPDATE, DELETE):
        await bridge.publish(Change(event, "comments", new=_comment(), old=_comment()))

    assert [c.event for c in received] == [INSERT, UPDATE, DELETE]


async def test_unsubscribe_stops_delivery_and_drops_channel(bridge):
    received = []
    sub = bridge.subscribe("comments", "project_id", "p1", received.append)
    other = bridge.subscribe("comments", "project_id", "p1", lambda change: None)
    assert bridge.channel_count == 1
    assert bridge.subscriber_count(sub.key) == 2

    sub.unsubscribe()
    await bridge.publish(Change(INSERT, "comments", new=_comment()))
    assert received == []
    assert bridge.subscriber_count(sub.key) == 1

    other.unsubscribe()
    assert bridge.channel_count == 0


async def test_bad_subscription_reports_error(bridge):
    sub = bridge.subscribe("nope", "project_id", "p1", lambda change: None)
    assert not sub.subscribed
    assert "Unknown table" in sub.error

    sub = bridge.subscribe("comments", "owner", "p1", lambda change: None)
    assert not sub.subscribed
    assert "Unknown column" in sub.error

    sub = bridge.subscribe("comments", "project_id", "", lambda change: None)
    assert not sub.subscribed
    assert bridge.channel_count == 0


async def test_async_handler_awaited(bridge):
    received = []

    async def handler(change):
        received.append(change.new["id"])

    bridge.subscribe("comments", "project_id", "p1", handler)
    delivered = await bridge.publish(Change(INSERT, "comments", new=_comment()))

    assert delivered == 1
    assert received == ["c1"]


async def test_failing_handler_does_not_block_others(bridge):
    received = []

    def broken(change):
        raise RuntimeError("handler bug")

    bridge.subscribe("comments", "project_id", "p1", broken)
    bridge.subscribe("comments", "project_id", "p1", received.append)

    delivered = await bridge.publish(Change(INSERT, "comments", new=_comment()))

    assert delivered == 1
    assert len(received) == 1


async def test_close_clears_everything(bridge):
    sub = bridge.subscribe("comments", "project_id", "p1", lambda change: None)
    bridge.close()
    assert bridge.channel_count == 0
    assert not sub.subscribed


async def test_numeric_values_compared_as_text(bridge):
    received = []
    bridge.subscribe("comments", "project_id", 42, received.append)
    await bridge.publish(Change(INSERT, "comments", new=_comment(project_id=42)))
    assert len(received) == 1


# ===================== WEBSOCKET =====================


@pytest.fixture()
def ws_app(tmp_path):
    settings = Settings(
        DATABASE_URL=f"sqlite:///{tmp_path / 'realtime.db'}",
        SECRET_KEY="test-secret",
        STORAGE_DIR=str(tmp_path / "storage"),
    )
    return create_app(settings)


def _login(client):
    r = client.post(
        "/api/auth/login",
        data={"username": seeding.DESIGNER_EMAIL, "password": seeding.DEMO_PASSWORD},
    )
    assert r.status_code == 200
    return r.json()["access_token"]


def test_websocket_streams_committed_changes(ws_app):
    with TestClient(ws_app) as client:
        assert client.post("/api/seed").status_code == 200
        assert client.post("/api/seed-brand-redesign").status_code == 200
        token = _login(client)

        url = f"/api/realtime/ws?table=comments&column=project_id&value={seeding.BRAND_PROJECT_ID}&token={token}"
        with client.websocket_connect(url) as ws:
            assert ws.receive_json()["type"] == "subscribed"

            assert client.post("/api/add-deliverables").status_code == 200

            first = ws.receive_json()
            second = ws.receive_json()
            assert first["type"] == "change"
            assert first["event"] == "INSERT"
            assert first["table"] == "comments"
            assert first["new"]["project_id"] == seeding.BRAND_PROJECT_ID
            assert second["new"]["is_client"] is False


def test_websocket_rejects_bad_token(ws_app):
    with TestClient(ws_app) as client:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/api/realtime/ws?table=comments&column=project_id&value=p1&token=bad"):
                pass
        assert exc_info.value.code == 4001


def test_websocket_reports_bad_subscription(ws_app):
    with TestClient(ws_app) as client:
        client.post("/api/seed")
        token = _login(client)

        with client.websocket_connect(f"/api/realtime/ws?table=nope&column=id&value=1&token={token}") as ws:
            frame = ws.receive_json()
            assert frame["type"] == "error"
            assert "Unknown table" in frame["message"]
            with pytest.raises(WebSocketDisconnect) as exc_info:
                ws.receive_json()
            assert exc_info.value.code == 4400


def test_websocket_disconnect_cleans_up(ws_app, caplog):
    with TestClient(ws_app) as client:
        client.post("/api/seed")
        token = _login(client)

        url = f"/api/realtime/ws?table=comments&column=project_id&value={seeding.WEBSITE_PROJECT_ID}&token={token}"
        with client.websocket_connect(url) as ws:
            assert ws.receive_json()["type"] == "subscribed"
            assert ws_app.state.realtime.channel_count == 1

        assert ws_app.state.realtime.channel_count == 0
        assert "Realtime sender failed" not in caplog.text
