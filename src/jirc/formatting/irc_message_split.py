"""Wrap long lines for IRC at word boundaries."""

from __future__ import annotations


def wrap_line(text: str, width: int) -> list[str]:
    """Split text into chunks of at most width characters.

    Breaks after the last space in a window when that space lies past the
    middle of it, otherwise hard-breaks at width. No character is dropped:
    "".join(wrap_line(text, width)) == text.
    """
    if width < 1:
        raise ValueError(f"width must be positive, got {width}")
    if len(text) <= width:
        return [text]

    chunks: list[str] = []
    start = 0
    while len(text) - start > width:
        window = text[start : start + width]
        last_space = window.rfind(" ")
        end = start + last_space + 1 if last_space > width // 2 else start + width
        chunks.append(text[start:end])
        start = end
    chunks.append(text[start:])
    return chunks
