"""Handling of `<think>...</think>` reasoning blocks emitted by some models."""

import re

THINK_OPEN = "<think>"
THINK_CLOSE = "</think>"

_THINK_BLOCK = re.compile(r"<think>.*?</think>", re.DOTALL)


def display_text(raw: str) -> str:
    """
    Close a dangling reasoning block for display.

    Only the returned string gets the synthetic closing tag; the accumulator the caller
    keeps appending deltas to stays untouched.
    """
    last_open = raw.rfind(THINK_OPEN)
    if last_open == -1:
        return raw
    if raw.find(THINK_CLOSE, last_open) != -1:
        return raw
    if not raw[last_open + len(THINK_OPEN):]:
        return raw
    return raw + THINK_CLOSE


def strip_reasoning(text: str) -> str:
    """Remove complete reasoning blocks; an unclosed block swallows the rest of the text."""
    text = _THINK_BLOCK.sub("", text)
    start = text.find(THINK_OPEN)
    if start != -1:
        text = text[:start]
    return text.replace(THINK_CLOSE, "")
