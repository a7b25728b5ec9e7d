from conftest import utc
from order_automation.domain.timeline import (
    NotificationEntry,
    StatusEntry,
    append_entry,
    has_status_entry,
    has_status_notification,
    iter_entries,
)


def test_malformed_entries_are_skipped():
    timeline = [
        "garbage",
        None,
        {"note": "без статуса"},
        {"type": "payment", "status": "paid"},
        {"status": "confirmed", "timestamp": "2024-06-14T12:00:00Z", "note": "ok"},
        {"type": "notification", "channel": "email", "event": "order_status", "status": "confirmed", "success": True},
    ]

    entries = list(iter_entries(timeline))

    assert len(entries) == 2
    assert isinstance(entries[0], StatusEntry)
    assert entries[0].timestamp == utc(2024, 6, 14, 12, 0)
    assert isinstance(entries[1], NotificationEntry)
    assert list(iter_entries("not a list")) == []


def test_notification_lookup_is_case_insensitive():
    timeline = [{
        "type": "Notification", "channel": "EMAIL", "event": "Order_Status",
        "status": "Shipped", "success": True,
    }]

    assert has_status_notification(timeline, "shipped")
    assert not has_status_notification(timeline, "delivered")


def test_notification_requires_literal_success_true():
    for success in ("true", 1, False):
        timeline = [{"type": "notification", "channel": "email", "event": "order_status",
                     "status": "shipped", "success": success}]
        assert not has_status_notification(timeline, "shipped")


def test_notification_on_other_channel_does_not_count():
    timeline = [{"type": "notification", "channel": "sms", "event": "order_status",
                 "status": "shipped", "success": True}]

    assert not has_status_notification(timeline, "shipped")


def test_has_status_entry_ignores_notifications():
    timeline = [{"type": "notification", "channel": "email", "event": "order_status",
                 "status": "confirmed", "success": True}]

    assert not has_status_entry(timeline, "confirmed")
    assert has_status_entry([{"status": "CONFIRMED"}], "confirmed")


def test_append_entry_keeps_existing_raw_entries():
    original = ["garbage", {"status": "pending", "legacy": 1}]

    updated = append_entry(original, StatusEntry(status="confirmed", timestamp=utc(2024, 6, 14, 12, 0),
                                                 note="Ödeme onaylandı", automated=True))

    assert original == ["garbage", {"status": "pending", "legacy": 1}]
    assert updated[:2] == original
    assert updated[2]["status"] == "confirmed"
    assert updated[2]["automated"] is True
    assert updated[2]["timestamp"].startswith("2024-06-14T12:00:00")


def test_appended_notification_is_detected():
    timeline = append_entry(None, NotificationEntry(
        channel="email", event="order_status", status="processing", success=True, automated=True,
    ))

    assert has_status_notification(timeline, "processing")
    assert "timestamp" not in timeline[0]


def test_notification_without_channel_or_event_does_not_count():
    assert not has_status_notification(
        [{"type": "notification", "status": "processing", "success": True}], "processing"
    )
    assert not has_status_notification(
        [{"type": "notification", "channel": "email", "status": "processing", "success": True}], "processing"
    )
    assert not has_status_notification(
        [{"type": "notification", "event": "order_status", "status": "processing", "success": True}], "processing"
    )
