"""Exception taxonomy raised while assembling document packages."""
from __future__ import annotations

from typing import Optional


class AssemblyError(ValueError):
    """Base class for failures tied to one input package."""

    def __init__(self, message: str, *, source: Optional[str] = None) -> None:
        self.reason = message
        self.source = source
        super().__init__(f"{source}: {message}" if source else message)


class MalformedPackage(AssemblyError):
    """The archive cannot be opened or lacks its primary content part."""


class MalformedContent(AssemblyError):
    """The primary content part is not well-formed or has no body."""


class UnsupportedPart(AssemblyError):
    """A node references a package part that cannot be carried over."""

    def __init__(self, message: str, *, source: Optional[str] = None, r_id: Optional[str] = None) -> None:
        self.r_id = r_id
        super().__init__(message, source=source)
