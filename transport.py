"""
Show state and OSC command routing.

OSC address -> effect (addresses are matched lowercased):
  /time /time/str /transport/time /stopwatch/time /bigclock
                      -> set timecode (see timecode.normalize_to_hhmmss)
  /play  [on]         -> play
  /stop  [on]         -> stop (and reset timecode when reset_on_stop is set)
  /pause [on]         -> pause
  /reset /rewind      -> timecode 00:00:00
"""

import json
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from timecode import ZERO_TIME, is_on, normalize_to_hhmmss, scalar_args


class TransportState(str, Enum):
    STOPPED = "stop"
    PLAYING = "play"
    PAUSED = "pause"


class RouterAction(Enum):
    TIME_UPDATED = "time_updated"
    STATE_CHANGED = "state_changed"
    IGNORED = "ignored"


@dataclass(frozen=True)
class OutgoingEvent:
    """One message pushed to viewers: {"type": "time"|"state", "value": str}."""

    type: str
    value: str

    @classmethod
    def time(cls, timecode: str) -> "OutgoingEvent":
        return cls("time", timecode)

    @classmethod
    def state(cls, transport: TransportState) -> "OutgoingEvent":
        return cls("state", transport.value)

    def to_json(self) -> str:
        return json.dumps({"type": self.type, "value": self.value}, separators=(",", ":"))


# Accepted OSC addresses (REAPER and Max aliases)
TIME_ADDRESSES = frozenset({"/time", "/time/str", "/transport/time", "/stopwatch/time", "/bigclock"})
ADDR_PLAY = "/play"
ADDR_STOP = "/stop"
ADDR_PAUSE = "/pause"
RESET_ADDRESSES = frozenset({"/reset", "/rewind"})


class ShowState:
    """Transport state and last timecode, guarded together by one lock."""

    def __init__(self):
        self._lock = threading.Lock()
        self._transport = TransportState.STOPPED
        self._timecode = ZERO_TIME

    @property
    def transport(self) -> TransportState:
        with self._lock:
            return self._transport

    @property
    def timecode(self) -> str:
        with self._lock:
            return self._timecode

    def snapshot(self) -> tuple[TransportState, str]:
        with self._lock:
            return self._transport, self._timecode

    def set_timecode(self, timecode: str) -> None:
        with self._lock:
            self._timecode = timecode

    def set_transport(self, transport: TransportState, reset_time: bool = False) -> None:
        with self._lock:
            self._transport = transport
            if reset_time:
                self._timecode = ZERO_TIME


Emit = Callable[[OutgoingEvent], None]


class CommandRouter:
    """Classifies one OSC message and applies it to a ShowState.

    Every accepted command emits, even when the value is unchanged.
    """

    def __init__(self, state: ShowState, emit: Emit, reset_on_stop: bool = False):
        self.state = state
        self._emit = emit
        self.reset_on_stop = reset_on_stop

    def route(self, address: str, args: Sequence[Any] = ()) -> RouterAction:
        addr = str(address or "").lower()
        args = scalar_args(args)
        first_on = is_on(args[0]) if args else True

        if addr in TIME_ADDRESSES:
            hhmmss = normalize_to_hhmmss(args)
            if hhmmss is None:
                return RouterAction.IGNORED
            self.state.set_timecode(hhmmss)
            self._emit(OutgoingEvent.time(hhmmss))
            return RouterAction.TIME_UPDATED

        if addr == ADDR_PLAY and first_on:
            return self._transition(addr, TransportState.PLAYING)

        if addr == ADDR_STOP and first_on:
            return self._transition(addr, TransportState.STOPPED, reset_time=self.reset_on_stop)

        if addr == ADDR_PAUSE and first_on:
            return self._transition(addr, TransportState.PAUSED)

        if addr in RESET_ADDRESSES:
            self.state.set_timecode(ZERO_TIME)
            self._emit(OutgoingEvent.time(ZERO_TIME))
            return RouterAction.TIME_UPDATED

        return RouterAction.IGNORED

    def _transition(self, addr: str, transport: TransportState, reset_time: bool = False) -> RouterAction:
        self.state.set_transport(transport, reset_time=reset_time)
        print(f"[OSC] {addr} → {transport.value}")
        if reset_time:
            # time before state, so viewers never show a stale time at "stop"
            self._emit(OutgoingEvent.time(ZERO_TIME))
        self._emit(OutgoingEvent.state(transport))
        return RouterAction.STATE_CHANGED
