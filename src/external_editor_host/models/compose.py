"""Compose document model.

Mirrors the mail client's compose details object. Fields the host does not
understand are kept as extras and sent back untouched.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model using the camelCase names of the wire protocol."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Priority(str, Enum):
    """Message priority levels accepted by the mail client."""

    LOWEST = "lowest"
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    HIGHEST = "highest"


class DeliveryFormat(str, Enum):
    """Delivery formats accepted by the mail client."""

    AUTO = "auto"
    PLAIN_TEXT = "plaintext"
    HTML = "html"
    BOTH = "both"


class RecipientNodeType(str, Enum):
    """Address book entry kinds that can stand in for an address."""

    CONTACT = "contact"
    MAILING_LIST = "mailingList"


class RecipientNode(CamelModel):
    """Address book reference used as a recipient."""

    id: str = Field(description="Address book node ID")
    type: RecipientNodeType = Field(description="Kind of address book node")

    def to_header_value(self) -> str:
        return json.dumps(self.model_dump(mode="json", by_alias=True), separators=(",", ":"))


Recipient = Union[str, RecipientNode]


def recipient_to_header_value(recipient: Recipient) -> str:
    if isinstance(recipient, RecipientNode):
        return recipient.to_header_value()
    return recipient


def recipient_from_header_value(value: str) -> Recipient:
    """Parse a header value back into a recipient.

    Values starting with ``{`` are address book nodes in JSON form,
    everything else is an address.

    Raises:
        ValueError: If the value looks like a node but is not valid JSON.
    """
    if not value:
        raise ValueError("empty recipient")
    if value.startswith("{"):
        try:
            return RecipientNode.model_validate(json.loads(value))
        except ValueError as exc:
            raise ValueError(f"invalid recipient node {value}: {exc}") from exc
    return value


class CustomHeader(CamelModel):
    """A user-defined header passed through to the mail client."""

    name: str = Field(description="Header name, conventionally X- prefixed")
    value: str = Field(description="Header value")


class Attachment(CamelModel):
    """Attachment metadata. Content is never transferred."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    id: int | None = Field(default=None, description="Attachment ID in the compose window")
    name: str = Field(default="", description="File name")
    size: int = Field(default=0, description="Size in bytes")
    content_type: str | None = Field(default=None, description="MIME type if known")


class ComposeDetails(CamelModel):
    """Structured representation of the message being composed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    from_: Recipient | None = Field(default=None, alias="from", description="Sending identity")
    to: list[Recipient] = Field(default_factory=list, description="To recipients")
    cc: list[Recipient] = Field(default_factory=list, description="Cc recipients")
    bcc: list[Recipient] = Field(default_factory=list, description="Bcc recipients")
    reply_to: list[Recipient] = Field(default_factory=list, description="Reply-To recipients")
    subject: str = Field(default="", description="Subject header")

    priority: Priority | None = Field(default=None, description="Message priority")
    delivery_format: DeliveryFormat | None = Field(default=None, description="Delivery format")
    attach_vcard: bool | None = Field(
        default=None, alias="attachVCard", description="Whether to attach the sender's vCard"
    )
    delivery_status_notification: bool | None = Field(
        default=None, description="Request a delivery status notification"
    )
    return_receipt: bool | None = Field(default=None, description="Request a return receipt")
    custom_headers: list[CustomHeader] = Field(default_factory=list, description="Custom headers")

    is_plain_text: bool | None = Field(default=None, description="Whether plain text is authoritative")
    body: str | None = Field(default=None, description="Rich (HTML) body")
    plain_text_body: str | None = Field(default=None, description="Plain text body")
    attachments: list[Attachment] = Field(default_factory=list, description="Attachment metadata")

    @field_validator("to", "cc", "bcc", "reply_to", mode="before")
    @classmethod
    def _coerce_recipient_list(cls, value: Any) -> Any:
        if value is None or value == "":
            return []
        if isinstance(value, (str, dict, RecipientNode)):
            return [value]
        return value

    def uses_plain_text(self) -> bool:
        """Whether the plain text body is the authoritative one."""
        if self.is_plain_text is not None:
            return self.is_plain_text
        return self.body is None

    def get_body(self) -> str:
        body = self.plain_text_body if self.uses_plain_text() else self.body
        return body or ""

    def with_body(self, body: str) -> ComposeDetails:
        """Copy with only the authoritative body set to ``body``.

        A body that was absent stays absent when ``body`` is empty.
        """
        field, other = "plain_text_body", "body"
        if not self.uses_plain_text():
            field, other = other, field
        if not body and getattr(self, field) is None:
            return self.model_copy(update={other: None})
        return self.model_copy(update={field: body, other: None})
