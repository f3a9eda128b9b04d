"""Tests for push template loading and rendering."""

from __future__ import annotations

import pytest

from aegis_notify.core.types import NotificationKind
from aegis_notify.pipeline.templates import PushTemplateEngine


class TestPushTemplateEngine:
    def setup_method(self) -> None:
        self.engine = PushTemplateEngine()

    def test_templates_loaded(self) -> None:
        assert set(self.engine.templates) == set(NotificationKind)

    def test_chat_message(self) -> None:
        request = self.engine.build(
            NotificationKind.CHAT_MESSAGE,
            5,
            {"sender_name": "Bruno", "body": "hi", "group_id": "10"},
        )
        assert request.recipient_user_id == 5
        assert request.title == "Bruno"
        assert request.channel_id == "chat"
        assert request.data["screen"] == "/chat?groupId=10"

    def test_group_invite(self) -> None:
        request = self.engine.build(
            NotificationKind.GROUP_INVITE,
            5,
            {"inviter_name": "Ana", "group_name": "Family", "group_id": "10"},
        )
        assert request.body == 'Ana invited you to join "Family"'
        assert request.channel_id == "social"
        assert request.data == {
            "type": "group_invite",
            "groupId": "10",
            "groupName": "Family",
            "inviterName": "Ana",
        }

    def test_emergency(self) -> None:
        request = self.engine.build(NotificationKind.EMERGENCY, 5, {"user_name": "Ana", "group_id": "10"})
        assert request.title == "EMERGENCY - Ana"
        assert request.channel_id == "emergency"

    def test_render_does_not_double_substitute(self) -> None:
        rendered = PushTemplateEngine.render("{a} {b}", {"a": "{b}", "b": "x"})
        assert rendered == "{b} x"

    def test_render_keeps_unknown_placeholders(self) -> None:
        assert PushTemplateEngine.render("hi {name}", {}) == "hi {name}"


class TestTemplateFile:
    def test_missing_file_falls_back_to_chat_builtin(self, tmp_path) -> None:
        engine = PushTemplateEngine(tmp_path / "missing.yml")
        assert list(engine.templates) == [NotificationKind.CHAT_MESSAGE]
        with pytest.raises(KeyError):
            engine.build(NotificationKind.WELCOME, 1)

    def test_custom_file_overrides(self, tmp_path) -> None:
        path = tmp_path / "templates.yml"
        path.write_text(
            "templates:\n"
            "  chat_message:\n"
            "    title: 'Message from {sender_name}'\n"
            "    body: '{body}'\n"
            "    channel: messages\n"
            "    data:\n"
            "      groupId: '{group_id}'\n"
        )
        engine = PushTemplateEngine(path)
        request = engine.build(
            NotificationKind.CHAT_MESSAGE, 1, {"sender_name": "Ana", "body": "x", "group_id": "3"}
        )
        assert request.title == "Message from Ana"
        assert request.channel_id == "messages"
        assert request.data == {"type": "chat_message", "groupId": "3"}

    def test_template_without_channel_leaves_it_unset(self, tmp_path) -> None:
        path = tmp_path / "templates.yml"
        path.write_text(
            "templates:\n"
            "  welcome:\n"
            "    title: 'Hi {name}'\n"
            "    body: 'Welcome'\n"
        )
        request = PushTemplateEngine(path).build(NotificationKind.WELCOME, 1, {"name": "Ana"})
        assert request.channel_id is None
