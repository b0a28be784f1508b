# app/utils/clock.py

import calendar
from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Текущее время в UTC без tzinfo.
    Все колонки DateTime в леджере хранят "наивное" UTC-время, поэтому
    сравнения в Python и в SQL всегда идут в одной системе отсчета.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime | None) -> datetime | None:
    """Приводит datetime от провайдера (часто с tzinfo) к наивному UTC."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def add_months(value: datetime, months: int) -> datetime:
    """28 января + 1 месяц = 28 февраля, 31 января + 1 месяц = последний день февраля."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)
