#!/usr/bin/env python3
"""Validate mkvm/data/distros.yaml: schema correctness and URL reachability."""

from __future__ import annotations

import re
import sys
from pathlib import Path

import requests
import yaml

DISTROS_PATH = Path(__file__).resolve().parents[2] / "mkvm" / "data" / "distros.yaml"
URL_RE = re.compile(r"^https?://")
SHA256_RE = re.compile(r"^[0-9a-f]{64}$")
REQUEST_TIMEOUT = 30
USER_AGENT = "mkvm/distro-validator (GitHub Actions)"


def load_distros(path: Path) -> dict:
    with open(path) as f:
        return yaml.safe_load(f)


# ── Phase 1: Schema validation (fail-fast) ──────────────────────────


def validate_schema(data: dict) -> list[str]:
    errors: list[str] = []

    if not isinstance(data, dict) or "distros" not in data:
        errors.append("Top-level 'distros' key is missing")
        return errors

    distros = data["distros"]
    if not isinstance(distros, list):
        errors.append("'distros' must be a list")
        return errors

    seen: set[str] = set()
    for idx, entry in enumerate(distros):
        if not isinstance(entry, dict):
            errors.append(f"[{idx}] entry is not a mapping")
            continue
        key = entry.get("name", idx)

        # name
        if "name" not in entry:
            errors.append(f"[{key}] missing required field 'name'")
        elif not isinstance(entry["name"], str):
            errors.append(f"[{key}] 'name' must be a string")
        elif entry["name"] in seen:
            errors.append(f"[{key}] duplicate name")
        else:
            seen.add(entry["name"])

        # downloadURL
        if "downloadURL" not in entry:
            errors.append(f"[{key}] missing required field 'downloadURL'")
        elif not isinstance(entry["downloadURL"], str) or not URL_RE.match(entry["downloadURL"]):
            errors.append(f"[{key}] 'downloadURL' must start with http:// or https://")

        # sha256Sum
        if "sha256Sum" not in entry:
            errors.append(f"[{key}] missing required field 'sha256Sum'")
        elif not SHA256_RE.match(str(entry["sha256Sum"]).lower()):
            errors.append(f"[{key}] 'sha256Sum' must be 64 hex characters")

        # minSize
        min_size = entry.get("minSize")
        if min_size is None:
            errors.append(f"[{key}] missing required field 'minSize'")
        elif isinstance(min_size, bool) or not isinstance(min_size, int) or min_size <= 0:
            errors.append(f"[{key}] 'minSize' must be a positive integer, got {min_size!r}")

    return errors


# ── Phase 2: URL reachability (collect-all) ──────────────────────────


def check_url(key: str, url: str) -> str | None:
    """Return an error string if the URL is unreachable, else None."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT

    try:
        resp = session.head(url, timeout=REQUEST_TIMEOUT, allow_redirects=True)
        if resp.status_code < 400:
            return None
        # Some servers reject HEAD; fall back to GET with streaming
        if resp.status_code in (403, 405):
            resp = session.get(url, timeout=REQUEST_TIMEOUT, allow_redirects=True, stream=True)
            resp.close()
            if resp.status_code < 400:
                return None
        return f"[{key}] HTTP {resp.status_code} for {url}"
    except requests.RequestException as exc:
        return f"[{key}] {exc.__class__.__name__}: {exc} for {url}"


def validate_urls(data: dict) -> list[str]:
    errors: list[str] = []
    for entry in data["distros"]:
        url = entry.get("downloadURL")
        if not url:
            continue
        err = check_url(entry.get("name", "?"), url)
        if err:
            errors.append(err)

    return errors


# ── Main ─────────────────────────────────────────────────────────────


def main() -> int:
    print(f"Loading {DISTROS_PATH}")
    data = load_distros(DISTROS_PATH)

    print("\n=== Phase 1: Schema validation ===")
    schema_errors = validate_schema(data)
    if schema_errors:
        for e in schema_errors:
            print(f"  ERROR: {e}")
        print(f"\nSchema validation failed with {len(schema_errors)} error(s)")
        return 1
    distro_count = len(data["distros"])
    print(f"  OK: {distro_count} distros, all schemas valid")

    print("\n=== Phase 2: URL reachability ===")
    url_errors = validate_urls(data)
    if url_errors:
        for e in url_errors:
            print(f"  ERROR: {e}")
        print(f"\nURL validation failed: {len(url_errors)}/{distro_count} unreachable")
        return 1
    print(f"  OK: all {distro_count} URLs reachable")

    print("\nAll checks passed.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
