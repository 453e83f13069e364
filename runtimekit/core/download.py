"""
Network download manager with progress reporting.

This module fetches runtime archives into memory:
- HTTPS only; any other scheme is refused before a connection is made
- Progress reporting (bytes, percentage, speed) on stderr
- HTTPS proxy support from the user configuration
- No resume and no retries: a failed download is discarded entirely and the
  next invocation starts again from byte zero
"""

import io
import logging
import shutil
import sys
import time
from dataclasses import dataclass
from typing import Callable, Optional, TextIO

import requests
from requests.exceptions import RequestException

from runtimekit.core.config import Config
from runtimekit.core.exceptions import DownloadFailedError, InsecureDownloadError
from runtimekit.core.output import CommandOutput

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


@dataclass
class DownloadProgress:
    """Progress information for a download."""

    bytes_downloaded: int
    total_bytes: int  # 0 when the server sent no content-length
    percentage: float
    speed_bps: float  # bytes per second

    def __str__(self) -> str:
        """Format progress for display."""
        return format_progress(self)


def format_progress(progress: DownloadProgress) -> str:
    """
    Format progress for display.

    Example:
        >>> progress = DownloadProgress(52428800, 104857600, 50.0, 1048576)
        >>> print(format_progress(progress))
        50.0/100.0 MB (50.0%) at 1.0 MB/s
    """
    mb_downloaded = progress.bytes_downloaded / 1024 / 1024
    mb_total = progress.total_bytes / 1024 / 1024
    speed_mbps = progress.speed_bps / 1024 / 1024

    if progress.total_bytes > 0:
        return (
            f"{mb_downloaded:.1f}/{mb_total:.1f} MB "
            f"({progress.percentage:.1f}%) "
            f"at {speed_mbps:.1f} MB/s"
        )
    else:
        # Unknown total size
        return f"{mb_downloaded:.1f} MB at {speed_mbps:.1f} MB/s"


class ProgressBar:
    """
    Single-line progress bar redrawn in place on a terminal stream.

    Only used when the total size is known.
    """

    def __init__(self, total: int, stream: Optional[TextIO] = None):
        self.total = total
        self.position = 0
        self.stream = stream or sys.stderr
        self._drawn = False

    def set_position(self, position: int):
        # Never move backwards
        if position < self.position:
            return
        self.position = min(position, self.total)
        self._draw()

    def _draw(self):
        width = max(10, shutil.get_terminal_size((80, 20)).columns - 30)
        filled = int(width * self.position / self.total) if self.total else 0
        bar = "#" * filled + "-" * (width - filled)
        self.stream.write(f"\r{bar} {self.position:>10}/{self.total}")
        self.stream.flush()
        self._drawn = True

    def finish_and_clear(self):
        """Erase the bar so the next status line starts on a clean line."""
        if self._drawn:
            width = shutil.get_terminal_size((80, 20)).columns
            self.stream.write("\r" + " " * (width - 1) + "\r")
            self.stream.flush()
            self._drawn = False


def ensure_secure_url(url: str) -> None:
    """
    Refuse anything that is not an HTTPS URL.

    Raises:
        InsecureDownloadError: If the URL scheme is not https
    """
    if not url or not url.lower().startswith("https://"):
        raise InsecureDownloadError(url)


def download_url(
    url: str,
    output: CommandOutput = CommandOutput.NORMAL,
    config: Optional[Config] = None,
    progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
) -> bytes:
    """
    Download a URL into memory.

    Args:
        url: HTTPS URL to download
        output: Verbosity; a progress bar is shown unless quiet
        config: User configuration (for the HTTPS proxy)
        progress_callback: Optional callback for every received chunk

    Returns:
        The complete response body

    Raises:
        InsecureDownloadError: If the URL is not HTTPS (no I/O happens)
        DownloadFailedError: On transport errors or a non-2xx status

    Example:
        >>> data = download_url("https://example.com/cpython.tar.gz")
    """
    ensure_secure_url(url)

    config = config or Config.load()
    proxies = {}
    # Only https requests are made here, so only the https proxy matters
    https_proxy = config.https_proxy_url()
    if https_proxy:
        proxies["https"] = https_proxy
        logger.debug(f"Using HTTPS proxy {https_proxy}")

    logger.info(f"Downloading from {url}")

    try:
        response = requests.get(
            url, stream=True, allow_redirects=True, proxies=proxies or None
        )
    except RequestException as e:
        raise DownloadFailedError(url, f"download of {url} failed: {e}") from e

    try:
        if not 200 <= response.status_code < 300:
            raise DownloadFailedError(
                url,
                f"Failed to download {url}: HTTP {response.status_code}",
                status_code=response.status_code,
            )
        # A redirect may not downgrade the transport
        if response.url and not response.url.lower().startswith("https://"):
            raise InsecureDownloadError(response.url)

        return _read_body(url, response, output, progress_callback)
    finally:
        response.close()


def _read_body(
    url: str,
    response: requests.Response,
    output: CommandOutput,
    progress_callback: Optional[Callable[[DownloadProgress], None]],
) -> bytes:
    content_length = response.headers.get("content-length")
    try:
        total_size = int(content_length) if content_length else 0
    except ValueError:
        total_size = 0  # Unknown size

    bar = None
    if total_size > 0 and not output.is_quiet:
        bar = ProgressBar(total_size)

    buffer = io.BytesIO()
    downloaded = 0
    start_time = time.time()

    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if not chunk:
                continue
            buffer.write(chunk)
            downloaded += len(chunk)

            if bar is not None:
                bar.set_position(downloaded)

            if progress_callback:
                elapsed = time.time() - start_time
                progress_callback(
                    DownloadProgress(
                        bytes_downloaded=downloaded,
                        total_bytes=total_size,
                        percentage=(downloaded / total_size * 100)
                        if total_size > 0
                        else 0,
                        speed_bps=downloaded / elapsed if elapsed > 0 else 0,
                    )
                )
    except RequestException as e:
        logger.error(f"Error during download: {e}")
        raise DownloadFailedError(url, f"download of {url} failed: {e}") from e
    finally:
        if bar is not None:
            bar.finish_and_clear()

    logger.info(f"Download complete: {url} ({downloaded} bytes)")
    return buffer.getvalue()
