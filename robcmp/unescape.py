"""Expansion of backslash escapes in string literals."""

import re

_SIMPLE = {"a": "\a", "b": "\b", "f": "\f", "n": "\n", "r": "\r", "t": "\t", "v": "\v"}
_ESCAPE = re.compile(r"\\([0-7]{1,3}|.|$)", re.DOTALL)


def _replace(match: re.Match) -> str:
    code = match.group(1)
    if not code:
        return ""
    if code[0] in "01234567":
        return chr(int(code, 8) & 0xFF)
    return _SIMPLE.get(code, code)


def unescape(text: str) -> str:
    """Replace C-style escapes (\\n, \\t, octal \\nnn, \\any) by their characters."""
    return _ESCAPE.sub(_replace, text)