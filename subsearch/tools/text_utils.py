from __future__ import annotations

import re
import time

ELLIPSIS = "..."


def collapse_whitespace(text: str) -> str:
    return re.sub(r"\s+", " ", text).strip()


def truncate_at_word(text: str, max_length: int, *, window: int = 30) -> str:
    """Trim to ``max_length`` characters, preferring a break on a space, comma or period.

    The ellipsis counts toward the limit. The break point is searched only
    within the last ``window`` characters so short words never eat the text.
    """
    if len(text) <= max_length:
        return text

    cut = max(max_length - len(ELLIPSIS), 1)
    head = text[:cut]
    floor = max(cut - window, 0)
    for i in range(len(head) - 1, floor - 1, -1):
        if head[i] in " ,.":
            head = head[:i]
            break
    return head.rstrip(" ,.") + ELLIPSIS


def format_time_ago(created_utc: float, *, now: float | None = None) -> str:
    """Render a unix timestamp as a coarse relative age ("3 days ago")."""
    if created_utc <= 0:
        return "unknown"
    now = time.time() if now is None else now
    seconds = max(int(now - created_utc), 0)

    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    days = hours // 24
    if days == 1:
        return "yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return _plural(days // 7, "week")
    if days < 365:
        return _plural(days // 30, "month")
    return _plural(days // 365, "year")


def _plural(amount: int, unit: str) -> str:
    suffix = "" if amount == 1 else "s"
    return f"{amount} {unit}{suffix} ago"
