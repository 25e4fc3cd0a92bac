"""Pytest configuration and shared fixtures."""

from typing import Any, Callable

import pytest
import structlog

from external_editor_host import __version__


@pytest.fixture(autouse=True)
def reset_structlog():
    """Undo logging configuration done by cli.main."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def mock_settings():
    """Provide mock settings for testing."""
    from external_editor_host.config import Settings

    return Settings(
        log_level="DEBUG",
        max_frame_size=4096,
        max_body_length=1024,
    )


@pytest.fixture
def request_payload() -> Callable[..., dict[str, Any]]:
    """Build a camelCase edit request payload with a blank compose document."""

    def build(
        session_id: Any = 7,
        configuration: dict[str, Any] | None = None,
        **details: Any,
    ) -> dict[str, Any]:
        compose_details: dict[str, Any] = {
            "from": "someone@example.com",
            "to": [],
            "cc": [],
            "bcc": [],
            "replyTo": [],
            "subject": "",
            "isPlainText": True,
            "body": "",
            "plainTextBody": "",
            "attachments": [],
        }
        compose_details.update(details)
        return {
            "configuration": {
                "version": __version__,
                "shell": "sh",
                "template": "true /path/to/temp.eml",
                **(configuration or {}),
            },
            "sessionId": session_id,
            "composeDetails": compose_details,
        }

    return build


@pytest.fixture
def make_request(request_payload):
    """Build a validated ComposeRequest."""
    from external_editor_host.models import ComposeRequest

    def build(**kwargs: Any):
        return ComposeRequest.model_validate(request_payload(**kwargs))

    return build


@pytest.fixture
def sample_eml() -> bytes:
    """Provide an edited EML file as a user would save it."""
    return (
        b"From: foo@example.com\r\n"
        b"To: bar@example.com\r\n"
        b'To: {"id":"list1","type":"mailingList"}\r\n'
        b"Cc: \r\n"
        b"Subject: Weekly report\r\n"
        b"X-ExtEditorR-Priority: high\r\n"
        b"X-ExtEditorR-Help: KEEP blank line below to separate headers from body.\r\n"
        b"\r\n"
        b"Hello,\r\n\r\nAll done this week.\r\n"
    )
