"""
Show clock relay
- Serves the viewer page from ./public on HTTP_PORT (default 3000)
- WebSocket endpoint at ws://<host>:3000/ws   (browsers connect here)
- OSC listener on OSC_PORT (default 9000)     (REAPER/Max/TouchDesigner send here)

OSC message format:
  /time       "01:02:03"  - timecode string (also /time/str, /transport/time,
  /time       3725.4      -   /stopwatch/time, /bigclock); seconds; or h m s
  /play       [1]         - transport play   (0 is ignored)
  /pause      [1]         - transport pause
  /stop       [1]         - transport stop   (rewinds too when RESET_ON_STOP=true)
  /reset                  - timecode 00:00:00 (also /rewind)

Viewers receive:
  {"type":"time",  "value":"HH:MM:SS"}
  {"type":"state", "value":"stop"|"play"|"pause"}

Run with:
  uv run --with "fastapi[standard]" --with python-osc --with psutil --with python-dotenv python server.py
"""

import asyncio
import socket
import threading
from contextlib import asynccontextmanager
from pathlib import Path

import psutil
import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, WebSocket
from fastapi.staticfiles import StaticFiles
from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import BlockingOSCUDPServer

from config import Settings
from fanout import Broadcaster
from transport import CommandRouter, ShowState


def client_ip(websocket: WebSocket, trust_proxy: bool = False) -> str:
    """Viewer address for the console log, honouring X-Forwarded-For behind a proxy."""
    ip = ""
    if trust_proxy:
        ip = websocket.headers.get("x-forwarded-for", "").split(",")[0].strip()
    if not ip and websocket.client:
        ip = websocket.client.host or ""
    return ip.removeprefix("::ffff:")  # IPv6-mapped IPv4


def local_ipv4_list() -> list[str]:
    out = []
    for addrs in psutil.net_if_addrs().values():
        for addr in addrs:
            if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                out.append(addr.address)
    return out or ["127.0.0.1"]


# --- OSC ---

def osc_dispatcher(router: CommandRouter) -> Dispatcher:
    """Every address goes to the router; unknown ones are dropped there."""
    def _osc_handler(address: str, *args):
        router.route(address, args)

    dispatcher = Dispatcher()
    dispatcher.set_default_handler(_osc_handler)
    return dispatcher


def _run_osc_server(settings: Settings, router: CommandRouter, ready: threading.Event, holder: dict):
    try:
        server = BlockingOSCUDPServer((settings.osc_host, settings.osc_port), osc_dispatcher(router))
    except OSError as e:
        print(f"[OSC] error: {e}")
        ready.set()
        return
    holder["server"] = server
    ready.set()
    print(f"[OSC] Listening on {settings.osc_host}:{settings.osc_port}")
    server.serve_forever()


def create_app(settings: Settings | None = None, serve_osc: bool = True) -> FastAPI:
    settings = settings or Settings.from_env()
    state = ShowState()
    broadcaster = Broadcaster()
    router = CommandRouter(state, broadcaster.publish, reset_on_stop=settings.reset_on_stop)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        broadcaster.start()
        holder: dict = {}
        if serve_osc:
            ready = threading.Event()
            osc_thread = threading.Thread(
                target=_run_osc_server, args=(settings, router, ready, holder), daemon=True
            )
            osc_thread.start()
            await asyncio.to_thread(ready.wait)

        for ip in local_ipv4_list():
            print(f"[HTTP] connect to: http://{ip}:{settings.http_port}")
        try:
            yield
        finally:
            server = holder.get("server")
            if server:
                await asyncio.to_thread(server.shutdown)
                server.server_close()
            await broadcaster.stop()

    app = FastAPI(lifespan=lifespan)
    app.state.settings = settings
    app.state.show = state
    app.state.broadcaster = broadcaster
    app.state.router = router

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        await websocket.accept()
        ip = client_ip(websocket, settings.trust_proxy)
        # Send current state/time immediately so late viewers don't wait for the next OSC message
        await broadcaster.connect(websocket, state)
        print(f"[WS] {ip} connected ({len(broadcaster.clients)} total)")
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            broadcaster.disconnect(websocket)
            print(f"[WS] {ip} disconnected ({len(broadcaster.clients)} total)")

    if Path(settings.static_dir).is_dir():
        app.mount("/", StaticFiles(directory=settings.static_dir, html=True), name="static")

    return app


def main():
    load_dotenv()
    settings = Settings.from_env()
    uvicorn.run(create_app(settings), host=settings.http_host, port=settings.http_port)


if __name__ == "__main__":
    main()
