"""
Hash verification for downloaded runtime archives.

Digests are compared in constant time. A missing expected digest never
counts as a pass: ``verify_download`` reports it as ``SKIPPED`` and tells
the user that the check did not happen.
"""

import hashlib
import logging
import secrets
from enum import Enum
from typing import Optional

from runtimekit.core.exceptions import IntegrityMismatchError
from runtimekit.core.output import CommandOutput, echo

logger = logging.getLogger(__name__)

_EXPECTED_LENGTHS = {"sha256": 64, "sha512": 128}


class VerificationStatus(Enum):
    """Outcome of an integrity check."""

    VERIFIED = "verified"
    SKIPPED = "skipped"


def compute_digest(content: bytes, algorithm: str = "sha256") -> str:
    """
    Compute the hex digest of a byte buffer.

    Raises:
        ValueError: If algorithm is not supported
    """
    algorithm = algorithm.lower()
    if algorithm not in _EXPECTED_LENGTHS:
        raise ValueError(f"Unsupported hash algorithm: {algorithm}")
    return hashlib.new(algorithm, content).hexdigest()


def check_hash(content: bytes, expected: str, algorithm: str = "sha256") -> None:
    """
    Verify ``content`` against an expected hex digest.

    Success is silent.

    Raises:
        IntegrityMismatchError: If the digest differs, or the expected value
            is not a well-formed digest for the algorithm
    """
    expected = expected.strip().lower()
    actual = compute_digest(content, algorithm)

    if not _is_valid_hash_format(expected, algorithm):
        logger.error(f"Malformed expected {algorithm} digest: {expected!r}")
        raise IntegrityMismatchError(expected, actual)

    if not _constant_time_compare(actual, expected):
        raise IntegrityMismatchError(expected, actual)


def verify_download(
    content: bytes,
    expected: Optional[str],
    output: CommandOutput = CommandOutput.NORMAL,
    source: str = "",
) -> VerificationStatus:
    """
    Check a downloaded buffer, reporting what happened to the user.

    Args:
        content: Downloaded bytes
        expected: Expected SHA256 hex digest, or None if the build has none
        output: Verbosity for status lines
        source: URL or name used in error messages

    Returns:
        VERIFIED if the digest matched, SKIPPED if there was nothing to check

    Raises:
        IntegrityMismatchError: If the digest does not match
    """
    if expected is None:
        logger.warning(f"No hash available for {source or 'download'}, not verified")
        echo(output, "hash check skipped (no hash available)")
        return VerificationStatus.SKIPPED

    echo(output, "Checking hash")
    try:
        check_hash(content, expected)
    except IntegrityMismatchError as e:
        raise IntegrityMismatchError(e.expected, e.actual, source) from None

    logger.debug(f"Checksum verified for {source}")
    return VerificationStatus.VERIFIED


def _constant_time_compare(a: str, b: str) -> bool:
    return secrets.compare_digest(a.encode("utf-8"), b.encode("utf-8"))


def _is_valid_hash_format(hash_str: str, algorithm: str) -> bool:
    if not hash_str:
        return False
    if not all(c in "0123456789abcdef" for c in hash_str):
        return False
    return len(hash_str) == _EXPECTED_LENGTHS[algorithm.lower()]
