"""
Viewer registry and push fan-out.

Each viewer has its own bounded outbox and writer task, so a viewer that
stops reading only backs up its own outbox. When the outbox overflows the
viewer is dropped and closed; the page reconnects and gets a fresh snapshot.

The OSC thread calls publish(); events are handed to the event loop in
arrival order and copied into every open viewer's outbox.
"""

import asyncio

from fastapi import WebSocket
from fastapi.websockets import WebSocketState

from transport import OutgoingEvent, ShowState

OUTBOX_SIZE = 64
CLOSE_TRY_AGAIN_LATER = 1013


def _is_open(ws: WebSocket) -> bool:
    return ws.client_state == WebSocketState.CONNECTED and ws.application_state == WebSocketState.CONNECTED


class _Viewer:
    def __init__(self, ws: WebSocket, outbox_size: int):
        self.ws = ws
        self.outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=outbox_size)
        self.writer: asyncio.Task | None = None


class Broadcaster:
    def __init__(self, outbox_size: int = OUTBOX_SIZE):
        self.outbox_size = outbox_size
        self._viewers: dict[WebSocket, _Viewer] = {}
        self._closing: set[asyncio.Task] = set()
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def clients(self) -> set[WebSocket]:
        return set(self._viewers)

    def broadcast(self, event: OutgoingEvent) -> None:
        """Queue one event for every open viewer. Must run on the event loop.

        Closed viewers are skipped; a viewer whose outbox is full is dropped.
        """
        targets = [v for v in self._viewers.values() if _is_open(v.ws)]
        if not targets:
            return
        message = event.to_json()
        for viewer in targets:
            try:
                viewer.outbox.put_nowait(message)
            except asyncio.QueueFull:
                print("[WS] viewer not keeping up, dropping it")
                self._drop(viewer.ws, close=True)

    async def connect(self, ws: WebSocket, state: ShowState) -> None:
        """Register a new viewer with the current state and time queued first.

        Queueing the snapshot and registering happen in one loop step, so no
        broadcast can overtake the snapshot and none is missed.
        """
        viewer = _Viewer(ws, max(self.outbox_size, 2))
        transport, timecode = state.snapshot()
        viewer.outbox.put_nowait(OutgoingEvent.state(transport).to_json())
        viewer.outbox.put_nowait(OutgoingEvent.time(timecode).to_json())
        viewer.writer = asyncio.get_running_loop().create_task(self._write(viewer))
        self._viewers[ws] = viewer

    def disconnect(self, ws: WebSocket) -> None:
        self._drop(ws)

    def publish(self, event: OutgoingEvent) -> None:
        """Thread-safe: hand an event to the event loop for broadcast."""
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self.broadcast, event)

    def start(self) -> None:
        """Bind to the running loop; publish() is a no-op until then."""
        self._loop = asyncio.get_running_loop()

    async def stop(self) -> None:
        self._loop = None
        tasks = [v.writer for v in self._viewers.values() if v.writer] + list(self._closing)
        self._viewers.clear()
        self._closing.clear()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _write(self, viewer: _Viewer):
        while True:
            message = await viewer.outbox.get()
            if not _is_open(viewer.ws):
                continue
            try:
                await viewer.ws.send_text(message)
            except Exception:
                self._drop(viewer.ws)
                return

    def _drop(self, ws: WebSocket, close: bool = False) -> None:
        viewer = self._viewers.pop(ws, None)
        if viewer is None:
            return
        if viewer.writer and viewer.writer is not asyncio.current_task():
            viewer.writer.cancel()
        if close:
            task = asyncio.get_running_loop().create_task(self._close(ws))
            self._closing.add(task)
            task.add_done_callback(self._closing.discard)

    async def _close(self, ws: WebSocket):
        try:
            await ws.close(code=CLOSE_TRY_AGAIN_LATER)
        except Exception:
            pass  # already gone
