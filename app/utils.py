from datetime import datetime, date
from dateutil import parser as dtp


def parse_date(value, fmt: str | None = None) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if fmt:
        return datetime.strptime(value.strip(), fmt).date()
    return dtp.parse(value).date()


def to_cents(value: float | str) -> int:
    f = float(value)
    return int(round(f * 100))


def coalesce(*vals):
    for v in vals:
        if v not in (None, ""):
            return v
    return None
