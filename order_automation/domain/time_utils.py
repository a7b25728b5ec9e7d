"""
Время и даты в часовом поясе магазина.

Сервер может работать в UTC, а все правила ("в день доставки в 11:00")
заданы по стамбульскому времени. Любое сравнение с "сегодня" идёт через
эти функции.
"""
import re
from datetime import date, datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, Optional
from zoneinfo import ZoneInfo

from pydantic import TypeAdapter, ValidationError

from order_automation.domain.models import OrderTimeGroup

BUSINESS_TZ = ZoneInfo("Europe/Istanbul")

_DATE_KEY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}")
# "Sat Jun 15 2024 00:00:00 GMT+0300 (GMT+03:00)": так сериализует Date.toString()
_JS_DATE_RE = re.compile(r"^(\w{3} \w{3} \d{1,2} \d{4} \d{2}:\d{2}:\d{2}) GMT([+-]\d{4})")

_DATETIME_ADAPTER = TypeAdapter(datetime)

_FALLBACK_FORMATS = (
    "%d.%m.%Y",
    "%d.%m.%Y %H:%M",
    "%d/%m/%Y",
    "%d/%m/%Y %H:%M",
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%Y/%m/%d",
    "%Y/%m/%d %H:%M",
    "%B %d, %Y",
    "%b %d, %Y",
    "%B %d %Y",
    "%b %d %Y",
    "%d %B %Y",
    "%d %b %Y",
)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_business_tz(instant: datetime) -> datetime:
    """Naive значения считаем UTC (часы хостинга)"""
    if instant.tzinfo is None:
        instant = instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(BUSINESS_TZ)


def civil_date_key(instant: datetime) -> str:
    """YYYY-MM-DD по календарю Стамбула"""
    return to_business_tz(instant).strftime("%Y-%m-%d")


def civil_hour(instant: datetime) -> int:
    return to_business_tz(instant).hour


def civil_datetime(date_key: str, hour: int, minute: int = 0) -> datetime:
    """Момент времени hour:minute по Стамбулу в указанный день"""
    day = date.fromisoformat(date_key)
    return datetime(day.year, day.month, day.day, hour, minute, tzinfo=BUSINESS_TZ)


def order_time_group_for(instant: datetime) -> OrderTimeGroup:
    """Группа по часу оформления: 11-17 обед, 17-22 вечер, остальное ночь"""
    hour = civil_hour(instant)
    if 11 <= hour < 17:
        return OrderTimeGroup.NOON
    if 17 <= hour < 22:
        return OrderTimeGroup.EVENING
    return OrderTimeGroup.OVERNIGHT


def parse_instant(raw: Any) -> Optional[datetime]:
    """Разбор timestamp из JSON (ISO-строка или datetime), None если не получилось"""
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    try:
        return _DATETIME_ADAPTER.validate_python(raw.strip())
    except ValidationError:
        return None


def _parse_free_form(raw: str) -> Optional[datetime]:
    parsed = parse_instant(raw)
    if parsed is not None:
        return parsed

    js_match = _JS_DATE_RE.match(raw)
    if js_match:
        try:
            return datetime.strptime(f"{js_match.group(1)} {js_match.group(2)}", "%a %b %d %Y %H:%M:%S %z")
        except ValueError:
            pass

    try:
        return parsedate_to_datetime(raw)
    except (TypeError, ValueError, IndexError):
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(raw, fmt)
        except ValueError:
            continue
    return None


def normalize_delivery_date(raw: Any) -> Optional[str]:
    """
    Дата доставки в виде ключа YYYY-MM-DD.

    Строки, начинающиеся с YYYY-MM-DD, обрезаются до префикса. Остальное
    разбирается как произвольная дата: значения с часовым поясом переводятся
    в Стамбул, значения без пояса считаются стамбульским временем.
    """
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        raw = str(raw)
    if not isinstance(raw, str):
        return None

    value = raw.strip()
    if not value:
        return None

    match = _DATE_KEY_RE.match(value)
    if match:
        try:
            date.fromisoformat(match.group(0))
        except ValueError:
            return None
        return match.group(0)

    # Голые цифры pydantic читает как unix timestamp
    if value.isdigit():
        return None

    parsed = _parse_free_form(value)
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        return parsed.strftime("%Y-%m-%d")
    return civil_date_key(parsed)
