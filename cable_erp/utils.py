from __future__ import annotations

import random
import string
from datetime import datetime, date, timezone


def now() -> datetime:
    # Millisecond precision so timestamps survive a JSON round trip unchanged.
    ts = datetime.now(timezone.utc)
    return ts.replace(microsecond=(ts.microsecond // 1000) * 1000)


def iso_now() -> str:
    return now().isoformat(timespec="milliseconds")


def as_day(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


def generate_sale_number(when: datetime | None = None) -> str:
    """SALE-YYYYMMDD-XXXXX"""
    when = when or now()
    suffix = "".join(random.choices(string.ascii_uppercase + string.digits, k=5))
    return f"SALE-{when.strftime('%Y%m%d')}-{suffix}"


def next_sequence(stem: str, existing=()) -> int:
    """One past the highest numeric suffix already issued under ``stem``."""
    highest = 0
    for code in existing:
        code = str(code or "")
        if code.startswith(stem) and code[len(stem):].isdigit():
            highest = max(highest, int(code[len(stem):]))
    return highest + 1


def generate_batch_id(prefix: str, when=None, existing=()) -> str:
    """
    Batch codes follow {PREFIX}-{YYYYMMDD}-{NNN}; the sequence continues from
    the highest number issued for the same prefix and day.
    """
    day = as_day(when) or date.today()
    stem = f"{prefix.strip().upper()}-{day.strftime('%Y%m%d')}-"
    return f"{stem}{next_sequence(stem, existing):03d}"
