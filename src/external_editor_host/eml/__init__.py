"""EML codec.

Turns a compose document into the text file handed to the editor and
merges the edited file back.
"""

from .codec import ParsedEml, encode_eml, parse_eml, serialize_eml, split_headers

__all__ = ["ParsedEml", "encode_eml", "parse_eml", "serialize_eml", "split_headers"]
