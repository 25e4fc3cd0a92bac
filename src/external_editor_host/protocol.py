"""Protocol negotiation: version compatibility and liveness pings."""

from __future__ import annotations

import structlog

from external_editor_host import __version__
from external_editor_host.exceptions import VersionMismatchError
from external_editor_host.models import Configuration, Ping

logger = structlog.get_logger()


def is_version_compatible(host_version: str, extension_version: str) -> bool:
    """Check whether an extension version can talk to this host.

    Both versions must have exactly three dot-separated parts and agree on
    major and minor. The patch part (including any pre-release suffix) is
    ignored.
    """
    host_parts = host_version.split(".")
    extension_parts = extension_version.split(".")
    return (
        len(host_parts) == 3
        and len(extension_parts) == 3
        and host_parts[0] == extension_parts[0]
        and host_parts[1] == extension_parts[1]
    )


def answer_ping(request: Ping, host_version: str = __version__) -> Ping:
    """Echo ``ping`` as ``pong``.

    If the extension sent its version, the reply also reports the host
    version and whether the two are compatible.
    """
    reply = request.model_copy(update={"pong": request.ping})
    if request.version is not None:
        reply = reply.model_copy(
            update={
                "host_version": host_version,
                "compatible": is_version_compatible(host_version, request.version),
            }
        )
    return reply


def check_version(configuration: Configuration, host_version: str = __version__) -> None:
    """Gate an edit request on version compatibility.

    Raises:
        VersionMismatchError: If versions differ in major or minor and the
            request does not ask to bypass the check.
    """
    if is_version_compatible(host_version, configuration.version):
        return
    if configuration.bypass_version_check:
        logger.warning(
            "version_check_bypassed",
            extension_version=configuration.version,
            host_version=host_version,
        )
        return
    raise VersionMismatchError(
        f"Mail client extension is {configuration.version} while native messaging host "
        f"is {host_version}. The request has been discarded."
    )
