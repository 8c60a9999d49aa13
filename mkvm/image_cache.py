"""Checksum-keyed cache of downloaded base images."""

from __future__ import annotations

import hashlib
import tempfile
import time
from pathlib import Path
from typing import Optional

import requests

from mkvm.constants import IMAGE_SUBDIR, SHA256_RE
from mkvm.exceptions import DownloadFailed
from mkvm.models import CachedImage
from mkvm.utils import ensure_directory, log

USER_AGENT = "mkvm/0.1"
CHUNK_SIZE = 1024 * 256  # 256 KiB


class ImageCache:
    """Base images stored under ``<root>/qcow2/<checksum>``.

    Entries are never evicted. A lock file next to the images directory
    would be the place to serialise concurrent runs.
    """

    def __init__(
        self,
        root: Path,
        session: Optional[requests.Session] = None,
        verify_checksum: bool = False,
    ) -> None:
        self.root = root
        self.images_dir = root / IMAGE_SUBDIR
        self.verify_checksum = verify_checksum
        self._session = session

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers["User-Agent"] = USER_AGENT
        return self._session

    def path_for(self, checksum: str) -> Path:
        return self.images_dir / checksum

    def ensure(self, checksum: str, url: str) -> CachedImage:
        destination = self.path_for(checksum)
        if destination.exists():
            log("INFO", f"Using cached image: {destination}")
            return CachedImage(checksum=checksum, local_path=destination)

        ensure_directory(self.images_dir)
        log("INFO", f"downloading distro image {url} to {destination}")
        self._download(checksum, url, destination)
        return CachedImage(checksum=checksum, local_path=destination)

    def _download(self, checksum: str, url: str, destination: Path) -> None:
        try:
            response = self.session.get(url, stream=True)
        except requests.RequestException as exc:
            raise DownloadFailed(f"can't fetch {url}: {exc}") from exc

        with response:
            if response.status_code != 200:
                raise DownloadFailed(f"{url} replied {response.status_code} {response.reason or ''}".rstrip())

            total = response.headers.get("Content-Length")
            total_bytes = int(total) if total and total.isdigit() else None
            digest = hashlib.sha256()
            downloaded = 0
            start_time = time.time()

            # Only a complete transfer is renamed onto the cache key.
            with tempfile.NamedTemporaryFile(delete=False, dir=destination.parent, prefix=".partial-") as tmp:
                tmp_path = Path(tmp.name)
                try:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if not chunk:
                            continue
                        tmp.write(chunk)
                        digest.update(chunk)
                        downloaded += len(chunk)
                        _print_progress(downloaded, total_bytes, start_time)
                    print(flush=True)
                    tmp.flush()
                except requests.RequestException as exc:
                    tmp_path.unlink(missing_ok=True)
                    raise DownloadFailed(f"download of {url} failed: {exc}") from exc
                except Exception:
                    tmp_path.unlink(missing_ok=True)
                    raise

        if self.verify_checksum:
            self._verify(checksum, digest.hexdigest(), url, tmp_path)

        tmp_path.replace(destination)
        elapsed = time.time() - start_time
        log("SUCCESS", f"Downloaded {downloaded / (1024 * 1024):.1f} MiB in {elapsed:.1f}s")

    @staticmethod
    def _verify(expected: str, actual: str, url: str, tmp_path: Path) -> None:
        if not SHA256_RE.match(expected):
            tmp_path.unlink(missing_ok=True)
            raise DownloadFailed(f"can't verify {url}: cache key {expected!r} is not a sha256 digest")
        if actual != expected:
            tmp_path.unlink(missing_ok=True)
            raise DownloadFailed(f"checksum mismatch for {url}: expected {expected}, got {actual}")
        log("DEBUG", f"sha256 verified for {url}")


def _print_progress(downloaded: int, total_bytes: Optional[int], start_time: float) -> None:
    elapsed = time.time() - start_time
    speed = downloaded / elapsed if elapsed > 0 else 0
    downloaded_mb = downloaded / (1024 * 1024)
    if total_bytes:
        pct = downloaded * 100 / total_bytes
        total_mb = total_bytes / (1024 * 1024)
        bar_len = 30
        filled = min(bar_len, int(bar_len * downloaded / total_bytes))
        bar = "#" * filled + "-" * (bar_len - filled)
        print(
            f"\r  [{bar}] {pct:5.1f}% {downloaded_mb:.1f}/{total_mb:.1f} MiB ({speed / (1024 * 1024):.1f} MiB/s)",
            end="",
            flush=True,
        )
    else:
        print(f"\r  {downloaded_mb:.1f} MiB downloaded ({speed / (1024 * 1024):.1f} MiB/s)", end="", flush=True)
