"""Tests for mkvm.catalog module."""

from __future__ import annotations

import pytest

from mkvm.catalog import DistroCatalog
from mkvm.constants import DEFAULT_CATALOG_PATH
from mkvm.exceptions import CatalogUnavailable, DistroNotFound
from mkvm.models import DistroRecord


class TestLoad:
    def test_parses_records_in_order(self, catalog_file):
        catalog = DistroCatalog.load(catalog_file)
        assert catalog.names() == ["alpine-edge", "ubuntu-22.04"]
        assert catalog.list()[0] == DistroRecord(
            name="alpine-edge",
            download_url="http://x/alpine.qcow2",
            checksum="abc123",
            min_size_gb=4,
        )

    def test_missing_file(self, tmp_path):
        with pytest.raises(CatalogUnavailable, match="missing"):
            DistroCatalog.load(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "distros.yaml"
        path.write_text("distros: [\n")
        with pytest.raises(CatalogUnavailable, match="can't read"):
            DistroCatalog.load(path)

    def test_missing_top_level_list(self, tmp_path):
        path = tmp_path / "distros.yaml"
        path.write_text("distributions: {}\n")
        with pytest.raises(CatalogUnavailable, match="'distros'"):
            DistroCatalog.load(path)

    def test_missing_field(self, tmp_path):
        path = tmp_path / "distros.yaml"
        path.write_text("distros:\n  - name: x\n    downloadURL: http://x\n    minSize: 2\n")
        with pytest.raises(CatalogUnavailable, match="sha256Sum"):
            DistroCatalog.load(path)

    @pytest.mark.parametrize("size", ["0", "-1", "big", "true"])
    def test_min_size_must_be_positive_integer(self, tmp_path, size):
        path = tmp_path / "distros.yaml"
        path.write_text(f"distros:\n  - name: x\n    downloadURL: http://x\n    sha256Sum: aa\n    minSize: {size}\n")
        with pytest.raises(CatalogUnavailable, match="minSize"):
            DistroCatalog.load(path)

    def test_duplicate_names_rejected(self, tmp_path):
        entry = "  - name: x\n    downloadURL: http://x\n    sha256Sum: aa\n    minSize: 2\n"
        path = tmp_path / "distros.yaml"
        path.write_text("distros:\n" + entry + entry)
        with pytest.raises(CatalogUnavailable, match="duplicate"):
            DistroCatalog.load(path)

    def test_checksum_is_lowercased(self, tmp_path):
        path = tmp_path / "distros.yaml"
        path.write_text("distros:\n  - name: x\n    downloadURL: http://x\n    sha256Sum: ABCDEF\n    minSize: 2\n")
        assert DistroCatalog.load(path).resolve("x").checksum == "abcdef"

    def test_bundled_catalog_loads(self):
        catalog = DistroCatalog.load(DEFAULT_CATALOG_PATH)
        assert "alpine-edge" in catalog.names()
        assert all(record.min_size_gb > 0 for record in catalog.list())


class TestResolve:
    def test_exact_match(self, catalog_file):
        catalog = DistroCatalog.load(catalog_file)
        assert catalog.resolve("ubuntu-22.04").min_size_gb == 10

    def test_case_sensitive(self, catalog_file):
        catalog = DistroCatalog.load(catalog_file)
        with pytest.raises(DistroNotFound):
            catalog.resolve("Alpine-Edge")

    def test_not_found_lists_known_names(self, catalog_file):
        catalog = DistroCatalog.load(catalog_file)
        with pytest.raises(DistroNotFound) as exc:
            catalog.resolve("plan9")
        assert exc.value.name == "plan9"
        assert exc.value.known == ["alpine-edge", "ubuntu-22.04"]

    def test_list_returns_copy(self, catalog_file):
        catalog = DistroCatalog.load(catalog_file)
        catalog.list().clear()
        assert len(catalog.list()) == 2
