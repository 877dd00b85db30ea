"""Markup scrubbing for user-authored portfolio JSON."""
import re
from typing import Any

# Start of an opening or closing script tag; the tag runs to the next ">"
_TAG_START = re.compile(r"<\s*(/\s*)?script", re.IGNORECASE)
_CLOSE_START = re.compile(r"<\s*/\s*script", re.IGNORECASE)


def _strip_once(value: str) -> str:
    """Drop script elements (body included) and any unpaired script tags.

    Single forward scan: the cursor only moves right, and once no closing tag
    is left in the string it is never searched for again.
    """
    pieces = []
    kept_from = 0
    cursor = 0
    closes_left = True
    while True:
        tag = _TAG_START.search(value, cursor)
        if tag is None:
            break
        tag_end = value.find(">", tag.end())
        if tag_end == -1:
            # No ">" left, so nothing from here on is a complete tag
            break

        drop_until = tag_end + 1
        if tag.group(1) is None and closes_left:
            close = _CLOSE_START.search(value, drop_until)
            close_end = value.find(">", close.end()) if close else -1
            if close_end == -1:
                closes_left = False
            else:
                drop_until = close_end + 1

        pieces.append(value[kept_from:tag.start()])
        kept_from = cursor = drop_until

    pieces.append(value[kept_from:])
    return "".join(pieces)


def sanitize_string(value: str) -> str:
    # Repeat until stable: stripping "<scr<script>ipt>" leaves a new "<script>"
    cleaned = _strip_once(value)
    while cleaned != value:
        value = cleaned
        cleaned = _strip_once(value)
    return cleaned


def sanitize(value: Any) -> Any:
    """Return a copy of a JSON value with script markup stripped from every string leaf.

    Objects and arrays are rebuilt, keys are left alone, and non-string
    primitives are returned as they are.
    """
    if isinstance(value, str):
        return sanitize_string(value)
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    return value
