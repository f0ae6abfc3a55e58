"""
Terminal output shared by the CLI commands: ANSI colors, labelled rows
and section bars.
"""

import sys


_CODES = {
    "green":  "32",
    "red":    "31",
    "yellow": "33",
    "cyan":   "36",
    "bold":   "1",
    "dim":    "2",
}


class Color:
    """
    ANSI color wrapper. Off when stdout is not a TTY or after
    configure(False).
    """
    enabled: bool = True

    @classmethod
    def configure(cls, enabled: bool) -> None:
        cls.enabled = enabled and sys.stdout.isatty()

    @classmethod
    def paint(cls, style: str, s: str) -> str:
        if not cls.enabled:
            return s
        return f"\033[{_CODES[style]}m{s}\033[0m"

    @classmethod
    def green(cls, s: str) -> str:
        return cls.paint("green", s)

    @classmethod
    def red(cls, s: str) -> str:
        return cls.paint("red", s)

    @classmethod
    def yellow(cls, s: str) -> str:
        return cls.paint("yellow", s)

    @classmethod
    def cyan(cls, s: str) -> str:
        return cls.paint("cyan", s)

    @classmethod
    def bold(cls, s: str) -> str:
        return cls.paint("bold", s)

    @classmethod
    def dim(cls, s: str) -> str:
        return cls.paint("dim", s)


def _row(label: str, marker: str, value: str) -> str:
    return f"  {Color.dim(f'{label:<16}')}  {marker}  {value}"


def row_ok(label: str, value: str) -> str:
    return _row(label, Color.green("OK"), value)


def row_fail(label: str, value: str) -> str:
    return _row(label, Color.red("!!"), value)


def row_info(label: str, value: str) -> str:
    return _row(label, "  ", Color.dim(value))


BAR_HEAVY = "═" * 68
BAR_LIGHT = "─" * 68
