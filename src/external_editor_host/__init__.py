"""External Editor host - edit mail compose windows in an external editor.

This package implements the native messaging host that round-trips a
compose document through a temporary EML file and a user-chosen editor.
"""

__version__ = "1.1.0"
__author__ = "External Editor Revived contributors"

from external_editor_host.config import Settings, get_settings

__all__ = ["Settings", "get_settings", "__version__", "__author__"]
