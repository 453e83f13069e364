"""
Centralized exception hierarchy for RuntimeKit.

This module defines all custom exceptions raised while acquiring runtimes,
building the self-environment and publishing shims, so that callers can
react to each failure class without parsing messages.
"""

from typing import List, Optional


# ============================================================================
# Base Exceptions
# ============================================================================


class RuntimeKitError(Exception):
    """Base exception for all RuntimeKit errors."""

    pass


class ConfigError(RuntimeKitError):
    """Raised when the configuration file cannot be parsed."""

    pass


# ============================================================================
# Version Resolution Exceptions
# ============================================================================


class InvalidVersionError(RuntimeKitError):
    """Invalid version string or version request."""

    pass


class UnknownVersionError(RuntimeKitError):
    """Raised when no known build matches a version request."""

    def __init__(self, request, os_name: str = "", arch: str = ""):
        self.request = request
        self.os_name = os_name
        self.arch = arch
        msg = f"unknown version {request}"
        if os_name and arch:
            msg += f" for {os_name}-{arch}"
        super().__init__(msg)


# ============================================================================
# Acquisition Exceptions
# ============================================================================


class DownloadFailedError(RuntimeKitError):
    """Raised when a download fails at the transport or HTTP level."""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class InsecureDownloadError(DownloadFailedError):
    """Raised when a download is requested over a non-HTTPS URL."""

    def __init__(self, url: str):
        super().__init__(url, f"Refusing insecure download: {url}")


class IntegrityMismatchError(RuntimeKitError):
    """Raised when downloaded content does not match the expected digest."""

    def __init__(self, expected: str, actual: str, source: str = ""):
        self.expected = expected
        self.actual = actual
        self.source = source
        msg = f"hash mismatch: expected {expected} got {actual}"
        if source:
            msg = f"hash check of {source} failed: {msg}"
        super().__init__(msg)


class ExtractionFailedError(RuntimeKitError):
    """Raised when an archive cannot be unpacked into its install directory."""

    pass


class MissingSharedLibrariesError(RuntimeKitError):
    """Raised when an installed interpreter has unresolved shared libraries."""

    def __init__(self, libraries: List[str]):
        self.libraries = list(libraries)
        listing = "\n".join(f"  - {lib}" for lib in self.libraries)
        super().__init__(
            f"detected missing shared "
            f"librar{'y' if len(self.libraries) == 1 else 'ies'} required by Python:\n"
            f"{listing}\n"
            "Python installation is unable to run on this machine due to missing "
            "libraries. Install the listed libraries with your system package "
            "manager and run the command again."
        )


# ============================================================================
# Self-Environment Exceptions
# ============================================================================


class SelfEnvironmentError(RuntimeKitError):
    """Base exception for self-environment management errors."""

    pass


class EnvironmentSetupFailedError(SelfEnvironmentError):
    """Raised when a step of building the isolated environment fails."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"failed to initialize virtualenv ({step}): {message}")


class ShimPublishFailedError(RuntimeKitError):
    """Raised when no link strategy could publish a shim."""

    def __init__(self, shim, target, errors: Optional[List[str]] = None):
        self.shim = shim
        self.target = target
        self.errors = list(errors or [])
        msg = f"tried to link shim {shim} -> {target}"
        if self.errors:
            msg += ": " + "; ".join(self.errors)
        super().__init__(msg)
