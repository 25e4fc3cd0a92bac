"""Convert compose documents to and from editor-facing EML text.

The file starts with one header per line, followed by a blank line and
the authoritative body. Host-specific options use ``X-ExtEditorR-``
headers. A bracketed value such as ``[auto]`` shows the current setting
and leaves it unchanged when parsed back.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, TypeVar

import structlog

from external_editor_host.eml import meta_header
from external_editor_host.exceptions import (
    EmlParseError,
    EncodingError,
    UnknownOrDisallowedHeaderError,
)
from external_editor_host.models import (
    ComposeDetails,
    ComposeRequest,
    CustomHeader,
    DeliveryFormat,
    Priority,
    Recipient,
    WarningMessage,
    recipient_from_header_value,
    recipient_to_header_value,
)

logger = structlog.get_logger()

HEADER_PRIORITY = "X-ExtEditorR-Priority"
HEADER_DELIVERY_FORMAT = "X-ExtEditorR-Delivery-Format"
HEADER_ATTACH_VCARD = "X-ExtEditorR-Attach-vCard"
HEADER_DELIVERY_STATUS_NOTIFICATION = "X-ExtEditorR-Delivery-Status-Notification"
HEADER_RETURN_RECEIPT = "X-ExtEditorR-Return-Receipt"
HEADER_SEND_ON_EXIT = "X-ExtEditorR-Send-On-Exit"
HEADER_ALLOW_X_HEADERS = "X-ExtEditorR-Allow-X-Headers"
HEADER_ALLOW_CUSTOM_HEADERS = "X-ExtEditorR-Allow-Custom-Headers"
HEADER_X_HEADER = "X-ExtEditorR-X-Header"
HEADER_CUSTOM_HEADER = "X-ExtEditorR-Custom-Header"
HEADER_META = "X-ExtEditorR-Meta"
HEADER_ATTACHMENT = "X-ExtEditorR-Attachment"
HEADER_HELP = "X-ExtEditorR-Help"

META_PRIORITY = "priority"
META_DELIVERY_STATUS_NOTIFICATION = "delivery-status-notification"
META_RETURN_RECEIPT = "return-receipt"

_META_KEYS = {
    META_PRIORITY: HEADER_PRIORITY,
    META_DELIVERY_STATUS_NOTIFICATION: HEADER_DELIVERY_STATUS_NOTIFICATION,
    META_RETURN_RECEIPT: HEADER_RETURN_RECEIPT,
}

RECIPIENT_HEADERS = (("To", "to"), ("Cc", "cc"), ("Bcc", "bcc"), ("Reply-To", "reply_to"))

HELP_LINES_BEFORE = (
    "Use one address per `To/Cc/Bcc/Reply-To` header",
    "    (e.g. two recipients require two `To:` headers).",
    "Remove surrounding brackets from header values",
    "    to override default settings.",
    "Priority: " + ", ".join(p.value for p in Priority),
    "Delivery format: " + ", ".join(f.value for f in DeliveryFormat),
    'Custom header names must start with "X-".',
)
HELP_LINE_LAST = "KEEP blank line below to separate headers from body."

SEND_CANCELLED_TITLE = "Send on exit cancelled"

E = TypeVar("E", bound=Enum)


@dataclass
class ParsedEml:
    """Result of merging an edited file into the original request."""

    details: ComposeDetails
    send_on_exit: bool
    allow_custom_headers: bool
    warnings: list[WarningMessage] = field(default_factory=list)


def serialize_eml(request: ComposeRequest, newline: str = os.linesep) -> str:
    """Render the request's compose document as EML text.

    Args:
        request: The edit request.
        newline: Line separator for the header block.

    Returns:
        Headers, a blank line and the authoritative body.
    """
    details = request.compose_details
    configuration = request.configuration
    lines: list[str] = []
    placeholders: list[str] = []

    def add(name: str, value: str) -> None:
        value = _single_line(value)
        if not value and name not in placeholders:
            placeholders.append(name)
        lines.append(f"{name}: {value}")

    add("From", recipient_to_header_value(details.from_) if details.from_ is not None else "")
    for name, attribute in RECIPIENT_HEADERS:
        recipients: list[Recipient] = getattr(details, attribute)
        if not recipients:
            add(name, "")
        for recipient in recipients:
            add(name, recipient_to_header_value(recipient))
    add("Subject", details.subject)

    options = [
        (META_PRIORITY, details.priority.value if details.priority else ""),
        (META_DELIVERY_STATUS_NOTIFICATION, _format_bool(details.delivery_status_notification)),
        (META_RETURN_RECEIPT, _format_bool(details.return_receipt)),
    ]
    custom = [(header.name, header.value) for header in details.custom_headers]
    if configuration.meta_headers:
        foldable_custom = [(k, v) for k, v in custom if k.lower() not in _META_KEYS]
        meta_value, remaining = meta_header.fold(options + foldable_custom)
        if meta_value is not None:
            lines.append(f"{HEADER_META}: {meta_value}")
        options = [entry for entry in options if entry in remaining]
        custom = [entry for entry in custom if entry in remaining or entry not in foldable_custom]
    for key, value in options:
        add(_META_KEYS[key], value)

    delivery_format = details.delivery_format or DeliveryFormat.AUTO
    lines.append(f"{HEADER_DELIVERY_FORMAT}: [{delivery_format.value}]")
    if details.attach_vcard is not None:
        lines.append(f"{HEADER_ATTACH_VCARD}: [{_format_bool(details.attach_vcard)}]")
    lines.append(f"{HEADER_SEND_ON_EXIT}: {_format_bool(configuration.send_on_exit)}")
    allow = configuration.allow_custom_headers or bool(details.custom_headers)
    lines.append(f"{HEADER_ALLOW_X_HEADERS}: {_format_bool(allow)}")
    for name, value in custom:
        lines.append(f"{name}: {_single_line(value)}")

    for attachment in details.attachments:
        description = f"{attachment.name} ({attachment.size} bytes"
        if attachment.content_type:
            description += f", {attachment.content_type}"
        lines.append(f"{HEADER_ATTACHMENT}: {_single_line(description)})")

    if not configuration.suppress_help_headers:
        help_lines = list(HELP_LINES_BEFORE)
        if placeholders:
            help_lines.append("Empty placeholders: " + ", ".join(placeholders))
        help_lines.append(HELP_LINE_LAST)
        lines.extend(f"{HEADER_HELP}: {line}" for line in help_lines)

    return newline.join(lines) + newline + newline + details.get_body()


def encode_eml(text: str) -> tuple[bytes, list[WarningMessage]]:
    """Encode EML text as UTF-8, replacing anything that cannot be encoded.

    Returns:
        The encoded bytes and any warnings about lossy replacement.
    """
    try:
        return text.encode("utf-8"), []
    except UnicodeEncodeError as exc:
        logger.warning("eml_unencodable_text", position=exc.start, reason=exc.reason)
        warning = EncodingError(
            "The message contained text that is not valid Unicode. "
            "It was replaced with '?' before opening the editor."
        ).to_warning()
        return text.encode("utf-8", errors="replace"), [warning]


def parse_eml(
    data: bytes,
    request: ComposeRequest,
    prior_warnings: list[WarningMessage] | None = None,
) -> ParsedEml:
    """Merge an edited EML file back into the request's compose document.

    Args:
        data: Raw bytes of the edited file.
        request: The request the file was created from.
        prior_warnings: Warnings already collected for this session. They
            cancel send-on-exit like warnings found while parsing.

    Returns:
        The merged document, the effective send-on-exit and custom header
        permission, and all warnings.

    Raises:
        EmlParseError: If a header has a value that cannot be understood.
    """
    warnings = list(prior_warnings or [])
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("eml_invalid_utf8", offset=exc.start)
        text = data.decode("utf-8", errors="replace")
        warnings.append(
            EncodingError(
                f"The edited file is not valid UTF-8 (first bad byte at offset {exc.start}). "
                "Undecodable bytes were replaced with U+FFFD."
            ).to_warning()
        )

    header_lines, body = split_headers(text)
    merger = _HeaderMerger(request)
    for line in header_lines:
        merger.feed(line)
    return merger.finish(body, warnings)


def split_headers(text: str) -> tuple[list[str], str]:
    """Split text at the first blank line.

    Accepts LF and CRLF line endings. Continuation lines starting with
    whitespace are joined to the previous header. The body is returned
    exactly as it appears after the blank line.
    """
    lines: list[str] = []
    position = 0
    while position < len(text):
        end = text.find("\n", position)
        if end == -1:
            line, next_position = text[position:], len(text)
        else:
            line, next_position = text[position:end], end + 1
        line = line.rstrip("\r")
        if not line.strip():
            return lines, text[next_position:]
        if line[0] in " \t" and lines:
            lines[-1] = f"{lines[-1]} {line.strip()}"
        else:
            lines.append(line)
        position = next_position
    return lines, ""


class _HeaderMerger:
    """Accumulates header lines on top of the original document."""

    def __init__(self, request: ComposeRequest) -> None:
        self._original = request.compose_details
        self.send_on_exit = False
        self.allow_custom_headers = request.configuration.allow_custom_headers
        self.updates: dict[str, Any] = {
            "subject": "",
            "priority": None,
            "delivery_status_notification": None,
            "return_receipt": None,
        }
        self.recipients: dict[str, list[Recipient]] = {attr: [] for _, attr in RECIPIENT_HEADERS}
        self.custom_headers: list[CustomHeader] = []
        self.unknown: list[str] = []

    def feed(self, line: str) -> None:
        name, separator, value = line.partition(":")
        if not separator or not name.strip():
            logger.warning("eml_malformed_header", line=line)
            self.unknown.append(line.strip())
            return
        self._apply(name.strip(), _drop_separator_space(value))

    def _apply(self, name: str, raw: str, from_meta: bool = False) -> None:
        value = raw.strip()
        if not value:
            return
        key = name.lower()
        if from_meta and key in _META_KEYS:
            key = _META_KEYS[key].lower()
        recipient_attrs = {header.lower(): attr for header, attr in RECIPIENT_HEADERS}

        if key == "from":
            self.updates["from_"] = _parse_recipient(name, value)
        elif key in recipient_attrs:
            self.recipients[recipient_attrs[key]].append(_parse_recipient(name, value))
        elif key == "subject":
            self.updates["subject"] = raw
        elif key == HEADER_PRIORITY.lower():
            self._set_option("priority", name, value, lambda v: _parse_enum(Priority, name, v))
        elif key == HEADER_DELIVERY_FORMAT.lower():
            self._set_option(
                "delivery_format", name, value, lambda v: _parse_enum(DeliveryFormat, name, v)
            )
        elif key == HEADER_ATTACH_VCARD.lower():
            self._set_option("attach_vcard", name, value, lambda v: _parse_bool(name, v))
        elif key == HEADER_DELIVERY_STATUS_NOTIFICATION.lower():
            self._set_option(
                "delivery_status_notification", name, value, lambda v: _parse_bool(name, v)
            )
        elif key == HEADER_RETURN_RECEIPT.lower():
            self._set_option("return_receipt", name, value, lambda v: _parse_bool(name, v))
        elif key == HEADER_SEND_ON_EXIT.lower():
            self.send_on_exit = value.lower() == "true"
        elif key in (HEADER_ALLOW_X_HEADERS.lower(), HEADER_ALLOW_CUSTOM_HEADERS.lower()):
            self.allow_custom_headers = _parse_bool(name, value)
        elif key in (HEADER_X_HEADER.lower(), HEADER_CUSTOM_HEADER.lower()):
            custom_name, separator, custom_value = raw.lstrip().partition(":")
            if not separator or not custom_name.strip():
                raise EmlParseError(f"ExtEditorR failed to parse custom header: {value}")
            self.custom_headers.append(
                CustomHeader(name=custom_name.strip(), value=_drop_separator_space(custom_value))
            )
        elif key == HEADER_META.lower():
            try:
                entries = meta_header.unfold(value)
            except ValueError as exc:
                raise EmlParseError(f"ExtEditorR failed to parse {name}: {exc}") from exc
            for entry_name, entry_value in entries:
                self._apply(entry_name, entry_value, from_meta=True)
        elif key in (HEADER_HELP.lower(), HEADER_ATTACHMENT.lower()):
            pass
        elif key.startswith("x-"):
            self.custom_headers.append(CustomHeader(name=name, value=raw))
        else:
            # the mail client rejects custom header names without the X- prefix
            self.unknown.append(name)

    def _set_option(self, attribute: str, name: str, value: str, parse: Any) -> None:
        if value.startswith("[") and value.endswith("]"):
            self.updates[attribute] = getattr(self._original, attribute)
        else:
            self.updates[attribute] = parse(value)

    def finish(self, body: str, warnings: list[WarningMessage]) -> ParsedEml:
        if not self.allow_custom_headers:
            self.unknown.extend(header.name for header in self.custom_headers)
            self.custom_headers = []
        if self.unknown:
            logger.info("eml_unknown_headers", headers=self.unknown)
            warnings.append(UnknownOrDisallowedHeaderError(self.unknown).to_warning())

        send_on_exit = self.send_on_exit
        if warnings and send_on_exit:
            send_on_exit = False
            warnings.append(
                WarningMessage(
                    title=SEND_CANCELLED_TITLE,
                    message=(
                        "ExtEditorR did not send the message because of the warnings above. "
                        "Please review it and send it manually."
                    ),
                )
            )

        details = self._original.model_copy(
            update={
                **self.updates,
                **self.recipients,
                "custom_headers": self.custom_headers,
            }
        ).with_body(body)
        return ParsedEml(
            details=details,
            send_on_exit=send_on_exit,
            allow_custom_headers=self.allow_custom_headers,
            warnings=warnings,
        )


def _parse_recipient(name: str, value: str) -> Recipient:
    try:
        return recipient_from_header_value(value)
    except ValueError as exc:
        raise EmlParseError(f"ExtEditorR failed to parse {name} value: {value}") from exc


def _parse_enum(enum: type[E], name: str, value: str) -> E:
    try:
        return enum(value.lower())
    except ValueError as exc:
        raise EmlParseError(f"ExtEditorR failed to parse {name} value: {value}") from exc


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    raise EmlParseError(f"ExtEditorR failed to parse {name} value: {value}")


def _format_bool(value: bool | None) -> str:
    if value is None:
        return ""
    return "true" if value else "false"


def _single_line(value: str) -> str:
    return " ".join(value.splitlines())


def _drop_separator_space(value: str) -> str:
    # only the space after the colon belongs to the syntax, padding is part of the value
    return value[1:] if value.startswith(" ") else value
