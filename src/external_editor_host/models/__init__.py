"""Data models for the External Editor host.

This package contains Pydantic models for the compose document and the
native messaging protocol.
"""

from external_editor_host.models.compose import (
    Attachment,
    ComposeDetails,
    CustomHeader,
    DeliveryFormat,
    Priority,
    Recipient,
    RecipientNode,
    RecipientNodeType,
    recipient_from_header_value,
    recipient_to_header_value,
)
from external_editor_host.models.manifest import AppManifest
from external_editor_host.models.messaging import (
    ComposeRequest,
    ComposeResponse,
    Configuration,
    Notification,
    Ping,
    ResponseConfiguration,
    SessionId,
    WarningMessage,
    dump_message,
)

__all__ = [
    "AppManifest",
    "Attachment",
    "ComposeDetails",
    "ComposeRequest",
    "ComposeResponse",
    "Configuration",
    "CustomHeader",
    "DeliveryFormat",
    "Notification",
    "Ping",
    "Priority",
    "Recipient",
    "RecipientNode",
    "RecipientNodeType",
    "ResponseConfiguration",
    "SessionId",
    "WarningMessage",
    "dump_message",
    "recipient_from_header_value",
    "recipient_to_header_value",
]
