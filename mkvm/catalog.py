"""Distribution catalog loading for mkvm."""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

try:
    import yaml  # type: ignore
except ImportError as exc:  # pragma: no cover
    raise SystemExit("PyYAML is required but not installed") from exc

from mkvm.constants import DEFAULT_CATALOG_PATH
from mkvm.exceptions import CatalogUnavailable, DistroNotFound
from mkvm.models import DistroRecord

_REQUIRED_FIELDS = ("name", "downloadURL", "sha256Sum", "minSize")


def _parse_record(index: int, entry: object) -> DistroRecord:
    if not isinstance(entry, dict):
        raise CatalogUnavailable(f"distros[{index}] is not a mapping")
    missing = [field for field in _REQUIRED_FIELDS if field not in entry]
    if missing:
        raise CatalogUnavailable(f"distros[{index}] missing required field(s): {', '.join(missing)}")
    min_size = entry["minSize"]
    if isinstance(min_size, bool) or not isinstance(min_size, int) or min_size <= 0:
        raise CatalogUnavailable(f"distros[{index}] 'minSize' must be a positive integer (got {min_size!r})")
    return DistroRecord(
        name=str(entry["name"]),
        download_url=str(entry["downloadURL"]),
        checksum=str(entry["sha256Sum"]).lower(),
        min_size_gb=min_size,
    )


class DistroCatalog:
    """The static list of distros mkvm knows how to install."""

    def __init__(self, records: List[DistroRecord]) -> None:
        self._records = list(records)

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "DistroCatalog":
        if path is None:
            path = DEFAULT_CATALOG_PATH
        if not path.exists():
            raise CatalogUnavailable(f"Distribution catalog missing: {path}")
        try:
            data = yaml.safe_load(path.read_text())
        except (OSError, yaml.YAMLError) as exc:
            raise CatalogUnavailable(f"can't read distribution catalog {path}: {exc}") from exc
        if not isinstance(data, dict) or not isinstance(data.get("distros"), list):
            raise CatalogUnavailable(f"{path}: top-level 'distros' list is missing")

        records = [_parse_record(idx, entry) for idx, entry in enumerate(data["distros"])]
        seen = set()
        for record in records:
            if record.name in seen:
                raise CatalogUnavailable(f"{path}: duplicate distro name '{record.name}'")
            seen.add(record.name)
        return cls(records)

    def list(self) -> List[DistroRecord]:
        return list(self._records)

    def names(self) -> List[str]:
        return [record.name for record in self._records]

    def resolve(self, name: str) -> DistroRecord:
        for record in self._records:
            if record.name == name:
                return record
        raise DistroNotFound(name, self.names())
