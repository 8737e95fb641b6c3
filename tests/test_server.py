"""Behavior tests for the HTTP/WebSocket app and OSC ingestion."""

import socket
from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from pythonosc.osc_message_builder import OscMessageBuilder

import server
from config import Settings
from transport import ShowState, TransportState


def _app(tmp_path: Path, **overrides):
    settings = Settings(static_dir=str(tmp_path), **overrides)
    return server.create_app(settings, serve_osc=False)


def _dgram(address: str, *args) -> bytes:
    builder = OscMessageBuilder(address=address)
    for arg in args:
        builder.add_arg(arg)
    return builder.build().dgram


def test_new_viewer_receives_state_then_time(tmp_path: Path) -> None:
    app = _app(tmp_path)
    show: ShowState = app.state.show
    show.set_transport(TransportState.PLAYING)
    show.set_timecode("00:10:00")

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            assert ws.receive_json() == {"type": "state", "value": "play"}
            assert ws.receive_json() == {"type": "time", "value": "00:10:00"}


def test_routed_commands_reach_connected_viewers(tmp_path: Path) -> None:
    app = _app(tmp_path, reset_on_stop=True)

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as ws:
            ws.receive_json()
            ws.receive_json()

            app.state.router.route("/time", [3725])
            assert ws.receive_json() == {"type": "time", "value": "01:02:05"}

            app.state.router.route("/stop", [])
            assert ws.receive_json() == {"type": "time", "value": "00:00:00"}
            assert ws.receive_json() == {"type": "state", "value": "stop"}


def test_snapshot_goes_only_to_the_joining_viewer(tmp_path: Path) -> None:
    app = _app(tmp_path)

    with TestClient(app) as client:
        with client.websocket_connect("/ws") as first:
            first.receive_json()
            first.receive_json()
            with client.websocket_connect("/ws") as second:
                assert second.receive_json() == {"type": "state", "value": "stop"}
                assert second.receive_json() == {"type": "time", "value": "00:00:00"}

                app.state.router.route("/pause", [1])

                # the first viewer's next frame is the broadcast, not a second snapshot
                assert first.receive_json() == {"type": "state", "value": "pause"}
                assert second.receive_json() == {"type": "state", "value": "pause"}


def test_osc_datagrams_are_routed(tmp_path: Path) -> None:
    app = _app(tmp_path)
    dispatcher = server.osc_dispatcher(app.state.router)

    dispatcher.call_handlers_for_packet(_dgram("/Time", "01:02:03.5"), ("127.0.0.1", 50000))
    dispatcher.call_handlers_for_packet(_dgram("/play", 1), ("127.0.0.1", 50000))
    dispatcher.call_handlers_for_packet(_dgram("/foo", "bar"), ("127.0.0.1", 50000))
    dispatcher.call_handlers_for_packet(_dgram("/pause", 0), ("127.0.0.1", 50000))

    assert app.state.show.snapshot() == (TransportState.PLAYING, "01:02:03")


def test_osc_triplet_and_bang_datagrams(tmp_path: Path) -> None:
    app = _app(tmp_path)
    dispatcher = server.osc_dispatcher(app.state.router)

    dispatcher.call_handlers_for_packet(_dgram("/bigclock", 0, 10, 0), ("127.0.0.1", 50000))
    dispatcher.call_handlers_for_packet(_dgram("/pause"), ("127.0.0.1", 50000))

    assert app.state.show.snapshot() == (TransportState.PAUSED, "00:10:00")


def test_static_viewer_page_is_served(tmp_path: Path) -> None:
    (tmp_path / "index.html").write_text("<h1>clock</h1>")
    app = _app(tmp_path)

    with TestClient(app) as client:
        response = client.get("/")

    assert response.status_code == 200
    assert "clock" in response.text


def test_missing_static_dir_is_not_mounted(tmp_path: Path) -> None:
    app = server.create_app(Settings(static_dir=str(tmp_path / "nope")), serve_osc=False)

    with TestClient(app) as client:
        assert client.get("/").status_code == 404


@pytest.mark.parametrize(
    ("trust_proxy", "expected"),
    [(True, "203.0.113.9"), (False, "192.168.1.5")],
)
def test_client_ip_honours_proxy_setting(trust_proxy: bool, expected: str) -> None:
    websocket = SimpleNamespace(
        headers={"x-forwarded-for": "203.0.113.9, 10.0.0.1"},
        client=SimpleNamespace(host="::ffff:192.168.1.5"),
    )

    assert server.client_ip(websocket, trust_proxy) == expected


def test_client_ip_falls_back_to_peer_without_forwarded_header() -> None:
    websocket = SimpleNamespace(headers={}, client=SimpleNamespace(host="10.1.2.3"))

    assert server.client_ip(websocket, trust_proxy=True) == "10.1.2.3"


def test_local_ipv4_list_skips_loopback_and_ipv6(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        server.psutil,
        "net_if_addrs",
        lambda: {
            "lo": [SimpleNamespace(family=socket.AF_INET, address="127.0.0.1")],
            "eth0": [
                SimpleNamespace(family=socket.AF_INET, address="192.168.1.20"),
                SimpleNamespace(family=socket.AF_INET6, address="fe80::1"),
            ],
        },
    )

    assert server.local_ipv4_list() == ["192.168.1.20"]


def test_local_ipv4_list_falls_back_to_loopback(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(server.psutil, "net_if_addrs", lambda: {})

    assert server.local_ipv4_list() == ["127.0.0.1"]


def test_main_loads_dotenv_and_runs_uvicorn(monkeypatch: pytest.MonkeyPatch) -> None:
    calls = {}
    monkeypatch.setattr(server, "load_dotenv", lambda: calls.setdefault("dotenv", True))
    monkeypatch.setenv("HTTP_PORT", "8123")
    monkeypatch.setattr(
        server.uvicorn,
        "run",
        lambda app, host, port: calls.update(app=app, host=host, port=port),
    )

    server.main()

    assert calls["dotenv"] is True
    assert calls["port"] == 8123
    assert calls["app"].state.settings.http_port == 8123


def test_app_lifespan_can_run_twice(tmp_path: Path) -> None:
    """A second lifespan runs on a fresh event loop and still delivers."""
    app = _app(tmp_path)

    for timecode in ("00:00:01", "00:00:02"):
        with TestClient(app) as client:
            with client.websocket_connect("/ws") as ws:
                ws.receive_json()
                ws.receive_json()
                app.state.router.route("/time", [timecode])
                assert ws.receive_json() == {"type": "time", "value": timecode}
