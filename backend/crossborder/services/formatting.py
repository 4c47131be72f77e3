# backend/crossborder/services/formatting.py
from __future__ import annotations

import math
import re
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, Union

Number = Union[int, float, Decimal]

CURRENCY_SYMBOLS = {"HKD": "HK$", "CNY": "¥", "USD": "US$"}


def utcnow() -> datetime:
    # Always timezone-aware UTC
    return datetime.now(timezone.utc)


def as_aware_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize datetimes for safe comparison:
    - naive values are assumed to be UTC (SQLite drops tzinfo)
    - aware values are converted to UTC
    """
    if dt is None:
        return None
    if dt.tzinfo is None or dt.tzinfo.utcoffset(dt) is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_currency(amount: Optional[Number], currency: str = "HKD") -> str:
    value = float(amount or 0)
    symbol = CURRENCY_SYMBOLS.get(currency.upper(), currency.upper() + " ")
    if value == int(value):
        return f"{symbol}{int(value):,}"
    return f"{symbol}{value:,.2f}"


def time_ago(dt: datetime, now: Optional[datetime] = None) -> str:
    now = as_aware_utc(now) or utcnow()
    minutes = int((now - as_aware_utc(dt)).total_seconds() // 60)
    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minutes ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"
    return f"{hours // 24} days ago"


def slugify(title: str) -> str:
    slug = (title or "").lower()
    slug = re.sub(r"[^\w\s-]", "", slug, flags=re.ASCII)
    slug = re.sub(r"[\s_-]+", "-", slug)
    slug = slug.strip("-")
    return slug[:100]


@dataclass
class ContentStats:
    word_count: int = 0
    read_time: int = 0
    character_count: int = 0
    heading_count: int = 0
    image_count: int = 0
    link_count: int = 0
    paragraph_count: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


def content_stats(content: Optional[str]) -> ContentStats:
    """Markdown-ish content metrics shown next to the post editor."""
    if not content:
        return ContentStats()

    words = len([w for w in content.strip().split() if w])
    paragraphs = len([p for p in re.split(r"\n\s*\n", content) if p.strip()])

    return ContentStats(
        word_count=words,
        read_time=math.ceil(words / 200),
        character_count=len(content),
        heading_count=len(re.findall(r"#{1,6}\s", content)),
        image_count=len(re.findall(r"!\[.*?\]\(.*?\)", content)),
        # Image syntax also matches the link pattern, same as the editor counts them
        link_count=len(re.findall(r"\[.*?\]\(.*?\)", content)),
        paragraph_count=paragraphs,
    )
