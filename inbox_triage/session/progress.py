"""Session progress counters and date labels shown alongside each email."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime

EMAILS_PER_BRONZE = 10
BRONZE_PER_SILVER = 5   # 50 emails
SILVER_PER_GOLD = 2     # 100 emails

_MONTHS = {
    "Jan": 1, "Feb": 2, "Mar": 3, "Apr": 4, "May": 5, "Jun": 6,
    "Jul": 7, "Aug": 8, "Sep": 9, "Oct": 10, "Nov": 11, "Dec": 12,
}
_DATE_RE = re.compile(r"(\d+)\s+([A-Za-z]+)\s+(\d{4})")


@dataclass(frozen=True)
class Medals:
    bronze: int = 0
    silver: int = 0
    gold: int = 0


def medal_counts(triaged: int) -> Medals:
    """Every 10 emails earns a bronze; bronzes roll up into silver, then gold."""
    total_bronze = max(0, triaged) // EMAILS_PER_BRONZE
    per_gold = BRONZE_PER_SILVER * SILVER_PER_GOLD
    gold = total_bronze // per_gold
    remainder = total_bronze - gold * per_gold
    silver = remainder // BRONZE_PER_SILVER
    return Medals(bronze=remainder - silver * BRONZE_PER_SILVER, silver=silver, gold=gold)


def battery_progress(triaged: int) -> tuple[int, int, float]:
    """Progress toward the next bronze: (filled, capacity, fraction)."""
    filled = max(0, triaged) % EMAILS_PER_BRONZE
    return filled, EMAILS_PER_BRONZE, filled / EMAILS_PER_BRONZE


def describe_date(date_str: str, today: date | None = None) -> tuple[str, str | None]:
    """Turn "Mon, 8 Dec 2025 14:53:03" into ("Dec 8", "N days ago").

    Unrecognised strings come back unchanged with no relative label.
    """
    if not date_str:
        return "", None
    match = _DATE_RE.search(date_str)
    if not match:
        return date_str, None
    day, month_name, year = match.groups()
    month = _MONTHS.get(month_name[:3].title())
    if month is None:
        return date_str, None
    try:
        sent = date(int(year), month, int(day))
    except ValueError:
        return date_str, None

    days = ((today or datetime.now().date()) - sent).days
    if days == 0:
        ago = "Today"
    elif days == 1:
        ago = "Yesterday"
    elif days < 0:
        ago = "Future"
    else:
        ago = f"{days} days ago"
    return f"{month_name[:3].title()} {int(day)}", ago
