"""Line-oriented parsing of assembly text."""

from __future__ import annotations

from typing import Protocol


class Parser(Protocol):
    """Parses a single non-empty, trimmed line of assembly."""

    def parse(self, text: str) -> list:
        """Return the statements on the line; raise ValueError if it is invalid."""


def parse_asm(parser: Parser, text: str) -> list:
    """Parse every non-empty line of `text` and concatenate the statements."""
    return [
        statement
        for line in text.split("\n")
        if (stripped := line.strip())
        for statement in parser.parse(stripped)
    ]