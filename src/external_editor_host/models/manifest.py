"""Native messaging host manifest."""

from __future__ import annotations

from pydantic import BaseModel, Field

from external_editor_host.config import Settings

CONNECTION_TYPE = "stdio"
DESCRIPTION = "Edit mail compose windows in an external text editor"


class AppManifest(BaseModel):
    """The JSON document the mail client reads to find this host."""

    name: str
    description: str = DESCRIPTION
    path: str = Field(description="Absolute path of the host executable")
    connection_type: str = Field(default=CONNECTION_TYPE, alias="type")
    allowed_extensions: list[str]

    model_config = {"populate_by_name": True}

    @classmethod
    def for_program(cls, program_path: str, settings: Settings) -> AppManifest:
        return cls(
            name=settings.native_app_name,
            path=program_path,
            allowed_extensions=[settings.extension_id],
        )
