"""Unit tests for data models."""

import pytest
from pydantic import ValidationError

from external_editor_host.config import Settings
from external_editor_host.models import (
    AppManifest,
    ComposeDetails,
    ComposeRequest,
    Notification,
    Ping,
    Priority,
    RecipientNode,
    RecipientNodeType,
    dump_message,
    recipient_from_header_value,
    recipient_to_header_value,
)


class TestComposeDetails:
    """Test suite for ComposeDetails model."""

    def test_parses_camel_case_payload(self) -> None:
        """Test that wire names map to model fields."""
        details = ComposeDetails.model_validate(
            {
                "from": "me@example.com",
                "to": "you@example.com",
                "replyTo": [{"id": "c1", "type": "contact"}],
                "attachVCard": True,
                "priority": "high",
                "plainTextBody": "hi",
                "isPlainText": True,
            }
        )

        assert details.from_ == "me@example.com"
        assert details.to == ["you@example.com"]
        assert details.reply_to == [RecipientNode(id="c1", type=RecipientNodeType.CONTACT)]
        assert details.attach_vcard is True
        assert details.priority is Priority.HIGH
        assert details.get_body() == "hi"

    def test_unknown_fields_survive_round_trip(self) -> None:
        """Test that fields the host does not model are sent back."""
        details = ComposeDetails.model_validate({"identityId": "id3", "type": "reply"})

        dumped = dump_message(details)

        assert dumped["identityId"] == "id3"
        assert dumped["type"] == "reply"

    def test_html_body_is_authoritative_when_not_plain_text(self) -> None:
        """Test body selection and replacement."""
        details = ComposeDetails(is_plain_text=False, body="<p>old</p>", plain_text_body="old")

        updated = details.with_body("<p>new</p>")

        assert details.get_body() == "<p>old</p>"
        assert updated.body == "<p>new</p>"
        assert updated.plain_text_body is None

    def test_plain_text_assumed_without_rich_body(self) -> None:
        """Test that plain text wins when no flag and no rich body is sent."""
        details = ComposeDetails(plain_text_body="text")

        assert details.uses_plain_text() is True
        assert details.with_body("new").plain_text_body == "new"

    def test_absent_body_stays_absent(self) -> None:
        """Test that an empty edit of a document without a body sends no body."""
        details = ComposeDetails(is_plain_text=True, subject="s")

        updated = details.with_body("")

        assert updated.plain_text_body is None
        assert "plainTextBody" not in dump_message(updated)
        assert details.with_body("typed").plain_text_body == "typed"


class TestRecipients:
    """Test suite for recipient header conversion."""

    def test_node_round_trip(self) -> None:
        """Test that address book nodes survive header rendering."""
        node = RecipientNode(id="bar", type=RecipientNodeType.MAILING_LIST)

        value = recipient_to_header_value(node)

        assert value == '{"id":"bar","type":"mailingList"}'
        assert recipient_from_header_value(value) == node

    def test_plain_address(self) -> None:
        """Test that ordinary addresses are passed through."""
        assert recipient_from_header_value("Foo <foo@example.com>") == "Foo <foo@example.com>"

    def test_invalid_node_rejected(self) -> None:
        """Test that broken JSON nodes raise ValueError."""
        with pytest.raises(ValueError):
            recipient_from_header_value('{"id": "bar"')


class TestComposeRequest:
    """Test suite for ComposeRequest model."""

    def test_session_id_from_legacy_tab(self, request_payload) -> None:
        """Test that tab.id stands in for a missing sessionId."""
        payload = request_payload(session_id=None)
        del payload["sessionId"]
        payload["tab"] = {"id": 42, "type": "messageCompose"}

        request = ComposeRequest.model_validate(payload)

        assert request.session_id == 42

    def test_missing_session_id_rejected(self, request_payload) -> None:
        """Test that a request without any session id is invalid."""
        payload = request_payload()
        del payload["sessionId"]

        with pytest.raises(ValidationError):
            ComposeRequest.model_validate(payload)

    def test_configuration_defaults(self, make_request) -> None:
        """Test per-request configuration defaults."""
        request = make_request()

        assert request.configuration.send_on_exit is False
        assert request.configuration.meta_headers is False
        assert request.configuration.temporary_directory is None


class TestWireMessages:
    """Test suite for outbound message serialization."""

    def test_notification_omits_unset_fields(self) -> None:
        """Test that optional notification fields are left out."""
        notification = Notification(title="t", message="m", reset=True, session_id="s1")

        assert dump_message(notification) == {
            "title": "t",
            "message": "m",
            "reset": True,
            "sessionId": "s1",
        }

    def test_ping_uses_camel_case(self) -> None:
        """Test ping field aliases."""
        ping = Ping(ping=1, pong=1, host_version="1.1.0", compatible=True)

        assert dump_message(ping) == {
            "ping": 1,
            "pong": 1,
            "hostVersion": "1.1.0",
            "compatible": True,
        }

    def test_fractional_ping_accepted(self) -> None:
        """Test that a ping carrying a fractional JS number is kept as is."""
        ping = Ping.model_validate({"ping": 1700000000123.5})

        assert ping.ping == 1700000000123.5
        assert Ping.model_validate({"ping": 42}).ping == 42


class TestAppManifest:
    """Test suite for AppManifest model."""

    def test_for_program(self) -> None:
        """Test manifest generation from settings."""
        manifest = AppManifest.for_program("/usr/bin/external-editor-host", Settings())

        dumped = manifest.model_dump(by_alias=True)

        assert dumped["name"] == "external_editor_revived"
        assert dumped["type"] == "stdio"
        assert dumped["path"] == "/usr/bin/external-editor-host"
        assert dumped["allowed_extensions"] == ["external-editor-revived@tsundere.moe"]
