"""
Text normalization for recognized card text.
"""

import re
from typing import List

# C0/C1 control characters except \t and \n
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b-\x1f\x7f-\x9f]")
INLINE_WHITESPACE = re.compile(r"[ \t\u00a0\u3000]+")


def normalize_text(text: str) -> str:
    """Strip control characters, collapse inline whitespace, keep line breaks.

    Empty lines are dropped and every remaining line is trimmed.
    """
    if not text:
        return ""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = CONTROL_CHARS.sub("", text)
    return "\n".join(split_lines(text))


def split_lines(text: str) -> List[str]:
    lines = []
    for line in text.split("\n"):
        line = INLINE_WHITESPACE.sub(" ", line).strip()
        if line:
            lines.append(line)
    return lines
