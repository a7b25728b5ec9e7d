"""
Timeline заказа: журнал изменений статуса и отправленных уведомлений.

В БД хранится как JSON-массив. Записи бывают двух видов: смена статуса
(без поля type) и уведомление (type == "notification"). Чужие и битые
записи при разборе пропускаются, но при дописывании сохраняются как есть.
"""
from datetime import datetime
from typing import Any, Iterator, List, Optional, Union
from pydantic import BaseModel, StrictBool, ValidationError, field_validator

from order_automation.domain.time_utils import parse_instant


class StatusEntry(BaseModel):
    status: str
    timestamp: Optional[datetime] = None
    note: str = ""
    automated: bool = False

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value):
        return parse_instant(value)


class NotificationEntry(BaseModel):
    type: str = "notification"
    channel: str
    event: str
    status: str
    timestamp: Optional[datetime] = None
    success: StrictBool = False
    automated: bool = False

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp(cls, value):
        return parse_instant(value)


TimelineEntry = Union[StatusEntry, NotificationEntry]


def parse_entry(raw: Any) -> Optional[TimelineEntry]:
    if not isinstance(raw, dict):
        return None
    try:
        if str(raw.get("type", "")).lower() == "notification":
            return NotificationEntry.model_validate(raw)
        if "type" in raw:
            return None
        return StatusEntry.model_validate(raw)
    except ValidationError:
        return None


def iter_entries(timeline: Any) -> Iterator[TimelineEntry]:
    if not isinstance(timeline, list):
        return
    for raw in timeline:
        entry = parse_entry(raw)
        if entry is not None:
            yield entry


def append_entry(timeline: Any, entry: TimelineEntry) -> List[Any]:
    """Новый список: старые записи без изменений + entry"""
    existing = list(timeline) if isinstance(timeline, list) else []
    existing.append(entry.model_dump(mode="json", exclude_none=True))
    return existing


def has_status_entry(timeline: Any, status: str) -> bool:
    target = status.lower()
    return any(
        isinstance(entry, StatusEntry) and entry.status.lower() == target
        for entry in iter_entries(timeline)
    )


def has_status_notification(
    timeline: Any, status: str, channel: str = "email", event: str = "order_status"
) -> bool:
    """Было ли уже успешно отправлено уведомление о статусе status"""
    target = status.lower()
    return any(
        isinstance(entry, NotificationEntry)
        and entry.channel.lower() == channel
        and entry.event.lower() == event
        and entry.status.lower() == target
        and entry.success is True
        for entry in iter_entries(timeline)
    )
