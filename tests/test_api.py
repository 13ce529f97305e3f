"""Tests for the session HTTP API."""
import time

import pytest
from fastapi.testclient import TestClient

from walkroute.main import app
from walkroute.services.registry import SessionRegistry


@pytest.fixture
def client(geo):
    app.state.registry = SessionRegistry(geo)
    with TestClient(app) as c:
        yield c
    app.state.registry = None


def open_session(client, seed=None):
    response = client.post("/api/sessions", json=seed)
    assert response.status_code == 201
    return response.json()["session_id"]


def test_health(client):
    open_session(client)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "open_sessions": 1}


def test_open_empty_session(client):
    response = client.post("/api/sessions")

    assert response.status_code == 201
    view = response.json()["view"]
    assert view["mode"] == "road"
    assert view["route_point_count"] == 0
    assert view["show_search_panel"] is True
    assert "X-Request-ID" in response.headers


def test_tap_queues_map_commands(client):
    session_id = open_session(client)

    view = client.post(f"/api/sessions/{session_id}/taps", json={"latitude": 37.5, "longitude": 127.03}).json()
    assert view["route_point_count"] == 1

    commands = client.get(f"/api/sessions/{session_id}/commands").json()
    assert [c["op"] for c in commands] == ["draw_segment", "remove_current_location_marker"]
    assert commands[0]["args"] == {"latitude": 37.5, "longitude": 127.03}

    later = client.get(f"/api/sessions/{session_id}/commands", params={"after": commands[0]["seq"]}).json()
    assert [c["op"] for c in later] == ["remove_current_location_marker"]


def test_address_arrives_after_tap(client):
    session_id = open_session(client)
    client.post(f"/api/sessions/{session_id}/taps", json={"latitude": 37.5, "longitude": 127.03})

    entries = []
    for _ in range(100):
        entries = client.get(f"/api/sessions/{session_id}").json()["route_entries"]
        if entries:
            break
        time.sleep(0.01)

    assert entries == [{"index": 0, "label": "start", "address": "addr 37.5,127.03"}]


def test_revert_and_clear_route(client):
    session_id = open_session(client)
    for lat in (37.1, 37.2):
        client.post(f"/api/sessions/{session_id}/taps", json={"latitude": lat, "longitude": 127.0})

    view = client.post(f"/api/sessions/{session_id}/route/revert").json()
    assert view["route_point_count"] == 1

    view = client.delete(f"/api/sessions/{session_id}/route").json()
    assert view["route_point_count"] == 0

    ops = [c["op"] for c in client.get(f"/api/sessions/{session_id}/commands").json()]
    assert ops[-2:] == ["remove_last_line", "remove_all_lines"]


def test_spot_flow(client):
    session_id = open_session(client)
    base = f"/api/sessions/{session_id}"

    assert client.put(f"{base}/mode", json={"mode": "spot"}).json()["mode"] == "spot"
    client.post(f"{base}/taps", json={"latitude": 37.5, "longitude": 127.0})
    client.post(f"{base}/taps", json={"latitude": 37.6, "longitude": 127.1})

    view = client.patch(f"{base}/spots/1", json={"title": "Gate", "content": "Meet here"}).json()
    assert view["spots"][1]["title"] == "Gate"
    assert view["spots"][1]["content"] == "Meet here"

    view = client.post(f"{base}/spots/1/select").json()
    assert view["selected_spot"] == 1

    view = client.delete(f"{base}/spots/0").json()
    assert view["selected_spot"] == 0
    assert len(view["spots"]) == 1

    snapshot = client.get(f"{base}/snapshot").json()
    assert snapshot["route_points"] == []
    assert snapshot["spots"] == [{"title": "Gate", "content": "Meet here", "point": [127.1, 37.6]}]


def test_search_and_select_place(client):
    session_id = open_session(client)
    base = f"/api/sessions/{session_id}"

    assert client.post(f"{base}/search/focus").json()["is_input_focused"] is True
    assert client.put(f"{base}/search", json={"text": "seoul"}).json()["query_text"] == "seoul"

    place = {"id": "1", "name": "Seoul Forest", "address": "Ttukseom-ro 273", "latitude": 37.544, "longitude": 127.037}
    view = client.post(f"{base}/places/select", json=place).json()

    assert view["query_text"] == "Seoul Forest"
    assert view["is_input_focused"] is False
    assert view["route_point_count"] == 0


def test_seeded_session(client):
    seed = {
        "route_points": [{"latitude": 37.1, "longitude": 127.1}, {"latitude": 37.2, "longitude": 127.2}],
        "spots": [{"point": {"latitude": 37.15, "longitude": 127.15}, "title": "Bench"}],
    }
    session_id = open_session(client, seed)

    ops = [c["op"] for c in client.get(f"/api/sessions/{session_id}/commands").json()]
    assert ops == ["draw_polyline", "pan_to", "add_markers"]

    snapshot = client.get(f"/api/sessions/{session_id}/snapshot").json()
    assert snapshot["route_points"] == [[127.1, 37.1], [127.2, 37.2]]
    assert snapshot["distance_km"] > 0


def test_unknown_session_is_404(client):
    response = client.post("/api/sessions/nope/taps", json={"latitude": 37.5, "longitude": 127.0})

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "SESSION_NOT_FOUND"


def test_invalid_coordinates_rejected(client):
    session_id = open_session(client)
    response = client.post(f"/api/sessions/{session_id}/taps", json={"latitude": 120.0, "longitude": 127.0})
    assert response.status_code == 422


def test_close_session(client):
    session_id = open_session(client)

    assert client.delete(f"/api/sessions/{session_id}").status_code == 204
    assert client.get(f"/api/sessions/{session_id}").status_code == 404


def test_session_limit(geo):
    app.state.registry = SessionRegistry(geo, max_sessions=1)
    with TestClient(app) as c:
        open_session(c)
        response = c.post("/api/sessions")
    app.state.registry = None

    assert response.status_code == 503
    assert response.json()["detail"]["error"] == "TOO_MANY_SESSIONS"
