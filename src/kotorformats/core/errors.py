"""Exception types raised by the format codecs.

Every decode failure is a ``FormatError``, which is a ``ValueError`` so callers
that only care about "this file is corrupted or truncated" can keep catching
``ValueError``.
"""

from __future__ import annotations


class FormatError(ValueError):
    """Malformed or truncated resource data."""


class TruncatedDataError(FormatError):
    """A read or seek ran past the end of the buffer."""


class HeaderError(FormatError):
    """Wrong file type or version tag."""


class UnknownFieldTypeError(FormatError):
    """GFF field type tag outside the known range."""


class InvalidReferenceError(FormatError):
    """An index or offset points outside the table it refers to."""


class MissingDataError(FormatError):
    """Data the caller asked for is not present (or not of the expected kind)."""


class ResourceNotFoundError(LookupError):
    """A named resource is neither in the override directories nor in the KEY index."""
