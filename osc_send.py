"""
Interactive OSC sender. Type messages like:
  /time 01:02:03
  /time 3725
  /time 1 2 5
  /play
  /pause 1
  /stop 0

Ctrl+C or 'q' to quit.
"""
import os
import shlex

from pythonosc.udp_client import SimpleUDPClient

HOST = os.environ.get("OSC_SEND_HOST", "127.0.0.1")
PORT = int(os.environ.get("OSC_PORT", 9000))


def _parse_value(raw: str):
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        return raw  # send as string


def parse_line(line: str) -> tuple[str, list] | None:
    """Split '/address arg arg ...' into an address and typed arguments."""
    try:
        parts = shlex.split(line)
    except ValueError:
        return None
    if not parts or not parts[0].startswith("/"):
        return None
    address, *raw = parts
    return address, [_parse_value(r) for r in raw]


def main():
    client = SimpleUDPClient(HOST, PORT)
    print(f"OSC → {HOST}:{PORT}  (Ctrl+C to quit)\n")

    while True:
        try:
            line = input("> ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if not line or line in ("q", "quit", "exit"):
            break

        parsed = parse_line(line)
        if parsed is None:
            print("Usage: /address [value ...]")
            continue

        address, values = parsed
        client.send_message(address, values)
        print(f"  sent {address} → {values!r}")


if __name__ == "__main__":
    main()
