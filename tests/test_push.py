"""Tests for push payload parsing and notification-click routing."""

import pytest

from eventboard.application.offline.push import (
    build_notification,
    parse_push_payload,
    resolve_notification_click,
)


class TestBuildNotification:
    def test_defaults_when_no_data(self):
        notification = build_notification(None)
        assert notification.title == "Community Event Board"
        assert notification.body == "You have a new notification"
        assert notification.data == "/"
        assert notification.icon == "/icon-192.png"
        assert notification.badge == "/icon-192.png"
        assert [(a.action, a.title) for a in notification.actions] == [
            ("open", "View"),
            ("close", "Dismiss"),
        ]

    def test_payload_overrides_defaults(self):
        notification = build_notification(
            b'{"title": "Jazz night", "body": "Starts at 8", "url": "/events/42"}'
        )
        assert notification.title == "Jazz night"
        assert notification.body == "Starts at 8"
        assert notification.data == "/events/42"

    def test_dict_payload(self):
        assert build_notification({"title": "Hi"}).title == "Hi"

    @pytest.mark.parametrize("data", [b"not json", "[1, 2]", b"", '{"title": 5}'])
    def test_malformed_payload_falls_back_to_defaults(self, data):
        assert parse_push_payload(data).model_dump() == {
            "title": None,
            "body": None,
            "url": None,
        }
        assert build_notification(data).title == "Community Event Board"


class TestNotificationClick:
    def test_close_only_dismisses(self):
        outcome = resolve_notification_click("close", "/events/1", ["/events/1"])
        assert outcome.kind == "dismiss"
        assert outcome.url is None

    def test_open_focuses_matching_window(self):
        outcome = resolve_notification_click("open", "/events/1", ["/", "/events/1"])
        assert outcome.kind == "focus"
        assert outcome.url == "/events/1"

    def test_body_click_opens_new_window(self):
        outcome = resolve_notification_click(None, "/events/1", ["/"])
        assert outcome.kind == "open"
        assert outcome.url == "/events/1"

    def test_missing_url_targets_root(self):
        outcome = resolve_notification_click("open", None, [])
        assert outcome.kind == "open"
        assert outcome.url == "/"

    def test_relative_and_absolute_urls_match_with_origin(self):
        outcome = resolve_notification_click(
            "open",
            "/events/1",
            ["http://localhost:3000/events/1"],
            origin="http://localhost:3000",
        )
        assert outcome.kind == "focus"
        assert outcome.url == "http://localhost:3000/events/1"
