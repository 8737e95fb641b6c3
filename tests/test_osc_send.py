"""Behavior tests for the interactive OSC sender's line parser."""

import pytest

from osc_send import parse_line


@pytest.mark.parametrize(
    ("line", "expected"),
    [
        ("/play", ("/play", [])),
        ("/play 1", ("/play", [1])),
        ("/time 3725.5", ("/time", [3725.5])),
        ("/time 01:02:03", ("/time", ["01:02:03"])),
        ("/time 1 2 3", ("/time", [1, 2, 3])),
        ('/time/str "01:02:03.25"', ("/time/str", ["01:02:03.25"])),
    ],
)
def test_parse_line_types_arguments(line: str, expected: tuple) -> None:
    assert parse_line(line) == expected


@pytest.mark.parametrize("line", ["", "play", '/time "unterminated'])
def test_parse_line_rejects_bad_input(line: str) -> None:
    assert parse_line(line) is None
