"""User-facing notice text built from engine results.

Plain strings only; colouring and delivery belong to whoever consumes
the ``NoticeIssued`` events.
"""

from __future__ import annotations

import re
from typing import Sequence

UNLOCK_MESSAGE_PREFIX = "New item added to your collection log:"

_TAG_RE = re.compile(r"<[^>]*>")


def _capitalize(text: str) -> str:
    return text[:1].upper() + text[1:]


def unlocked_notice(name: str) -> str:
    return f"Unlocked {name}"


def newly_available_notice(names: Sequence[str], preview: int = 3) -> str | None:
    """Summarize newly available derived items.

    Lists at most *preview* names and folds the rest into "and N more".
    Returns None when there is nothing to report.
    """
    if not names:
        return None
    shown = ", ".join(_capitalize(n) for n in names[:preview])
    remaining = len(names) - preview
    if remaining > 0:
        shown += f" and {remaining} more"
    return f"New items unlocked: {shown}"


def locked_notice(action: str, item_name: str, missing: Sequence[str]) -> list[str]:
    """Lines explaining why *action* on *item_name* was blocked."""
    lines = [f"Cannot {action} {item_name} - item is locked!"]
    if missing:
        label = "Clog required: " if len(missing) == 1 else "Clogs required: "
        lines.append(label + ", ".join(missing))
    return lines


def sync_reminder() -> str:
    return "Open your Collection Log and browse tabs to sync your unlocks!"


def parse_unlock_message(message: str) -> str | None:
    """Extract the item name from a collection log unlock message.

    Returns None for any other message.
    """
    if UNLOCK_MESSAGE_PREFIX not in message:
        return None
    _, _, rest = message.partition(":")
    name = _TAG_RE.sub("", rest).strip()
    return name or None
