"""
Fill in missing SHA256 digests of the known-builds table.

For every build whose ``sha256`` is null the digest is taken from the
``SHA256SUMS`` file published next to the release assets. Builds missing
from that file are downloaded and hashed instead. The table is written
back after each entry, so an interrupted run keeps its progress.

Usage: python calculate_build_hashes.py [PATH ...]
"""

import json
import sys
from pathlib import Path

from runtimekit.core.download import download_url
from runtimekit.core.exceptions import DownloadFailedError
from runtimekit.core.output import CommandOutput
from runtimekit.core.verification import compute_digest

DEFAULT_TABLE = Path(__file__).parent / "runtimekit" / "data" / "python_builds.json"


def needs_update(current_hash):
    return not current_hash or current_hash == "null" or "TBD" in current_hash


def parse_sums(text):
    """Map asset file names to digests from a ``SHA256SUMS`` listing."""
    sums = {}
    for line in text.splitlines():
        parts = line.split()
        if len(parts) == 2:
            sums[parts[1].lstrip("*")] = parts[0].lower()
    return sums


def published_sums(url, cache):
    """Digests published for the release that ``url`` belongs to."""
    release = url.rsplit("/", 1)[0]
    if release not in cache:
        try:
            text = download_url(f"{release}/SHA256SUMS", CommandOutput.QUIET)
            cache[release] = parse_sums(text.decode("utf-8"))
        except DownloadFailedError as e:
            print(f"    -> No SHA256SUMS for {release} ({e})")
            cache[release] = {}
    return cache[release]


def lookup_digest(url, cache):
    asset = url.rsplit("/", 1)[1]
    digest = published_sums(url, cache).get(asset)
    if digest:
        return digest
    return compute_digest(download_url(url, CommandOutput.NORMAL))


def process_file(file_path):
    print(f"\nProcessing {file_path}")
    with open(file_path, "r", encoding="utf-8") as f:
        data = json.load(f)

    cache = {}
    failed = 0
    for build in data["builds"]:
        if not needs_update(build.get("sha256")):
            continue

        print(f"  Fixing {build['version']} {build['os']}-{build['arch']}")
        try:
            build["sha256"] = lookup_digest(build["url"], cache)
        except DownloadFailedError as e:
            print(f"    -> Failed to download ({e}). Leaving as is.")
            failed += 1
            continue
        print(f"    -> Hash: {build['sha256']}")

        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
    return failed


if __name__ == "__main__":
    files = [Path(p) for p in sys.argv[1:]] or [DEFAULT_TABLE]

    failures = 0
    for f in files:
        if f.exists():
            failures += process_file(f)
        else:
            print(f"File not found: {f}")
            failures += 1
    sys.exit(1 if failures else 0)
