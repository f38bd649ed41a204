"""
Annotation parser for free-text task entries.

Extracts ``#tags``, ``@contexts`` and a single ``due:<token>`` marker from
the raw text a user typed. The parser is total: any string, including an
empty one, yields a valid result.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import FrozenSet, Optional

from paperclip.utils.utils import end_of_day, get_date

TAG_RE = re.compile(r"#([a-zA-Z0-9_]+)")
CONTEXT_RE = re.compile(r"@([a-zA-Z0-9_]+)")
DUE_RE = re.compile(r"due:([\w\-/]+)")

WEEKDAYS = {
    "monday": 0, "mon": 0,
    "tuesday": 1, "tue": 1,
    "wednesday": 2, "wed": 2,
    "thursday": 3, "thu": 3,
    "friday": 4, "fri": 4,
    "saturday": 5, "sat": 5,
    "sunday": 6, "sun": 6,
}


@dataclass(frozen=True)
class ParsedDescription:
    """Result of parsing one raw task entry"""
    description: str
    tags: FrozenSet[str] = field(default_factory=frozenset)
    contexts: FrozenSet[str] = field(default_factory=frozenset)
    due_date: Optional[datetime] = None


def next_weekday(now: datetime, weekday: int) -> datetime:
    """Next occurrence of weekday strictly after today, at end of day.

    When today already is that weekday the result is one week out.
    """
    days_ahead = (weekday - now.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    return end_of_day(now.date() + timedelta(days=days_ahead))


def parse_due_date(token: str, now: Optional[datetime] = None) -> Optional[datetime]:
    """Interpret the token following ``due:``; unknown tokens give None"""
    now = now or datetime.now()
    key = token.lower()

    if key == "today":
        return end_of_day(now.date())
    if key == "tomorrow":
        return end_of_day(now.date() + timedelta(days=1))
    if key in WEEKDAYS:
        return next_weekday(now, WEEKDAYS[key])

    day = get_date(token)
    if day is None:
        return None
    return end_of_day(day)


def parse_description(raw: str, now: Optional[datetime] = None) -> ParsedDescription:
    """Split raw input into clean description, tags, contexts and due date.

    Marker bodies stay inline in the description (``Buy #milk`` becomes
    ``Buy milk``); only the first ``due:`` token is consumed.
    """
    raw = raw or ""
    description = raw

    tags = frozenset(match.lower() for match in TAG_RE.findall(raw))
    contexts = frozenset(match.lower() for match in CONTEXT_RE.findall(raw))

    due_date = None
    due_match = DUE_RE.search(raw)
    if due_match:
        due_date = parse_due_date(due_match.group(1), now)
        description = DUE_RE.sub("", description, count=1)

    description = TAG_RE.sub(r"\1", description)
    description = CONTEXT_RE.sub(r"\1", description)

    return ParsedDescription(
        description=description.strip(),
        tags=tags,
        contexts=contexts,
        due_date=due_date,
    )
