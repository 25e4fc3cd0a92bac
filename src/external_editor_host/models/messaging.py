"""Messages exchanged with the mail client over native messaging."""

from __future__ import annotations

from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from external_editor_host.models.compose import CamelModel, ComposeDetails

SessionId = Union[int, str]


class Configuration(CamelModel):
    """Per-request configuration sent by the extension."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore", frozen=True
    )

    version: str = Field(description="Extension version")
    shell: str = Field(default="sh", description="Shell used to run the command template")
    template: str = Field(default="", description="Command template with the temp file placeholder")
    editor: str | None = Field(default=None, description="Editor key used when template is empty")
    terminal: str | None = Field(default=None, description="Terminal key for console editors")
    temporary_directory: str | None = Field(
        default=None, description="Directory for temporary files instead of the platform default"
    )
    send_on_exit: bool = Field(default=False, description="Send the message after editing")
    suppress_help_headers: bool = Field(default=False, description="Omit help lines")
    allow_custom_headers: bool = Field(default=False, description="Pass custom headers through")
    meta_headers: bool = Field(default=False, description="Fold option headers into one line")
    bypass_version_check: bool = Field(default=False, description="Ignore version mismatch")


class WarningMessage(CamelModel):
    """Non-fatal problem shown to the user after an edit."""

    title: str
    message: str


class ComposeRequest(CamelModel):
    """Edit request for one compose window."""

    configuration: Configuration
    session_id: SessionId | None = Field(default=None, description="Opaque caller session ID")
    tab: dict[str, Any] | None = Field(default=None, description="Legacy tab object")
    compose_details: ComposeDetails

    @model_validator(mode="after")
    def _resolve_session_id(self) -> "ComposeRequest":
        if self.session_id is None:
            if self.tab is None or self.tab.get("id") is None:
                raise ValueError("request carries neither sessionId nor tab.id")
            self.session_id = self.tab["id"]
        return self


class ResponseConfiguration(CamelModel):
    version: str
    sequence: int = Field(ge=1, description="1-based chunk position")
    total: int = Field(ge=1, description="Number of chunks in this response")
    send_on_exit: bool = False


class ComposeResponse(CamelModel):
    """One chunk of an edit result."""

    configuration: ResponseConfiguration
    session_id: SessionId
    tab: dict[str, Any] | None = None
    compose_details: ComposeDetails
    warnings: list[WarningMessage] | None = None


class Notification(CamelModel):
    """Standalone message asking the client to notify the user."""

    title: str
    message: str
    reset: bool | None = Field(
        default=None, description="Client must drop session state and re-enable its action"
    )
    session_id: SessionId | None = None
    tab: dict[str, Any] | None = None


class Ping(CamelModel):
    """Liveness check, answered by echoing ``ping`` as ``pong``."""

    ping: int | float = Field(description="Caller timestamp, any JS number")
    pong: int | float | None = None
    version: str | None = Field(default=None, description="Extension version, if sent")
    host_version: str | None = None
    compatible: bool | None = None


def dump_message(message: BaseModel) -> dict[str, Any]:
    """Convert a message model to the JSON object sent on the wire."""
    return message.model_dump(mode="json", by_alias=True, exclude_none=True)
