"""
Runtime version model.

A ``VersionRequest`` is what a caller asks for (``cpython@3.10``, ``3``),
a ``Version`` is a fully qualified build (``cpython@3.10.11``). The string
form of a ``Version`` is used as the install directory name, so it only
ever contains characters that are safe in a path on every platform.
"""

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from runtimekit.core.exceptions import InvalidVersionError

DEFAULT_KIND = "cpython"

_KIND_RE = r"[a-z][a-z0-9_]*"
_SUFFIX_RE = r"[a-z][a-z0-9]*"
_REQUEST_RE = re.compile(
    rf"^(?:(?P<kind>{_KIND_RE})@)?"
    r"(?P<major>\d+)"
    r"(?:\.(?P<minor>\d+)"
    rf"(?:\.(?P<patch>\d+)(?P<suffix>{_SUFFIX_RE})?)?)?$"
)


def _validate_kind(kind: str) -> None:
    if not re.fullmatch(_KIND_RE, kind):
        raise InvalidVersionError(f"Invalid runtime kind: {kind!r}")


def _validate_suffix(suffix: str) -> None:
    if not re.fullmatch(_SUFFIX_RE, suffix):
        raise InvalidVersionError(f"Invalid version suffix: {suffix!r}")


@dataclass(frozen=True)
class Version:
    """Fully qualified runtime version."""

    kind: str
    major: int
    minor: int
    patch: int
    suffix: Optional[str] = None

    def __post_init__(self):
        _validate_kind(self.kind)
        if self.suffix is not None:
            _validate_suffix(self.suffix)
        if min(self.major, self.minor, self.patch) < 0:
            raise InvalidVersionError(f"Negative version component in {self!r}")

    @classmethod
    def parse(cls, value: str) -> "Version":
        """
        Parse a fully qualified version string.

        Example:
            >>> Version.parse("cpython@3.10.11")
            Version(kind='cpython', major=3, minor=10, patch=11, suffix=None)
        """
        request = VersionRequest.parse(value)
        version = request.to_version()
        if version is None:
            raise InvalidVersionError(
                f"Version {value!r} is not fully qualified (expected X.Y.Z)"
            )
        return version

    def sort_key(self) -> Tuple[int, int, int]:
        return (self.major, self.minor, self.patch)

    def __str__(self) -> str:
        return f"{self.kind}@{self.major}.{self.minor}.{self.patch}{self.suffix or ''}"


@dataclass(frozen=True)
class VersionRequest:
    """
    Possibly partial version request.

    Unset fields are wildcards when matching against known builds.
    """

    major: int
    minor: Optional[int] = None
    patch: Optional[int] = None
    suffix: Optional[str] = None
    kind: Optional[str] = None

    def __post_init__(self):
        if self.kind is not None:
            _validate_kind(self.kind)
        if self.suffix is not None:
            _validate_suffix(self.suffix)
        if self.patch is not None and self.minor is None:
            raise InvalidVersionError("A patch version requires a minor version")

    @classmethod
    def parse(cls, value: str) -> "VersionRequest":
        """
        Parse a request such as ``3``, ``3.10``, ``cpython@3.10.11``.

        Raises:
            InvalidVersionError: If the string is not a valid request
        """
        match = _REQUEST_RE.match(value.strip().lower())
        if not match:
            raise InvalidVersionError(
                f"Invalid version request: {value!r}\n"
                f"Expected format: [kind@]X, [kind@]X.Y or [kind@]X.Y.Z"
            )
        groups = match.groupdict()
        return cls(
            kind=groups["kind"],
            major=int(groups["major"]),
            minor=int(groups["minor"]) if groups["minor"] is not None else None,
            patch=int(groups["patch"]) if groups["patch"] is not None else None,
            suffix=groups["suffix"],
        )

    def matches(self, version: Version) -> bool:
        """Check every specified field against ``version``."""
        if self.kind is not None and self.kind != version.kind:
            return False
        if self.major != version.major:
            return False
        if self.minor is not None and self.minor != version.minor:
            return False
        if self.patch is not None and self.patch != version.patch:
            return False
        if self.suffix is not None and self.suffix != version.suffix:
            return False
        return True

    def to_version(self) -> Optional[Version]:
        """Convert to a ``Version`` if minor and patch are both pinned."""
        if self.minor is None or self.patch is None:
            return None
        return Version(
            kind=self.kind or DEFAULT_KIND,
            major=self.major,
            minor=self.minor,
            patch=self.patch,
            suffix=self.suffix,
        )

    def __str__(self) -> str:
        rv = f"{self.kind}@" if self.kind else ""
        rv += str(self.major)
        if self.minor is not None:
            rv += f".{self.minor}"
            if self.patch is not None:
                rv += f".{self.patch}{self.suffix or ''}"
        return rv
