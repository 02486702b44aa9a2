# ABOUTME: Unit tests for the previous-run snapshot
# ABOUTME: Tests snapshot persistence and deleted-ingress detection

import json
from pathlib import Path

import pytest

from sidra_ingress.utils.kube import IngressKey
from sidra_ingress.utils.snapshot import IngressSnapshot, detect_deletions


@pytest.mark.unit
class TestIngressSnapshot:
    """Tests for IngressSnapshot load/save."""

    def test_load_missing_file(self, tmp_path: Path):
        """Test the first run starts from an empty snapshot."""
        snapshot = IngressSnapshot(tmp_path / "missing.json")

        assert snapshot.load() == set()

    def test_save_then_load(self, tmp_path: Path):
        """Test saved keys are read back."""
        snapshot = IngressSnapshot(tmp_path / "snapshot.json")
        keys = {IngressKey("store", "shop"), IngressKey("blog", "web")}

        snapshot.save(keys)

        assert snapshot.load() == keys

    def test_save_format(self, tmp_path: Path):
        """Test the file lists keys sorted with a timestamp."""
        path = tmp_path / "snapshot.json"

        IngressSnapshot(path).save([IngressKey("store", "shop"), IngressKey("blog", "web")])

        data = json.loads(path.read_text())
        assert "generated_at" in data
        assert data["ingresses"] == [
            {"namespace": "blog", "name": "web"},
            {"namespace": "store", "name": "shop"},
        ]

    def test_load_malformed_json(self, tmp_path: Path):
        """Test a corrupt snapshot is ignored."""
        path = tmp_path / "snapshot.json"
        path.write_text("{not json")

        assert IngressSnapshot(path).load() == set()

    def test_load_wrong_shape(self, tmp_path: Path):
        """Test a snapshot without the ingresses list is ignored."""
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({"items": []}))

        assert IngressSnapshot(path).load() == set()

    def test_save_to_missing_directory_does_not_raise(self, tmp_path: Path):
        """Test a write failure is logged, not raised."""
        snapshot = IngressSnapshot(tmp_path / "nope" / "snapshot.json")

        snapshot.save([IngressKey("store", "shop")])

        assert not snapshot.path.exists()


@pytest.mark.unit
class TestDetectDeletions:
    """Tests for detect_deletions."""

    def test_reports_missing_keys_sorted(self):
        """Test keys gone since last run are returned in sorted order."""
        previous = {
            IngressKey("store", "shop"),
            IngressKey("store", "old"),
            IngressKey("blog", "gone"),
        }
        current = {IngressKey("store", "shop")}

        assert detect_deletions(previous, current) == [
            IngressKey("blog", "gone"),
            IngressKey("store", "old"),
        ]

    def test_no_previous_snapshot(self):
        """Test nothing is deleted on the first run."""
        assert detect_deletions(set(), {IngressKey("store", "shop")}) == []

    def test_failed_namespaces_are_not_reported(self):
        """Test keys in namespaces that failed to list are kept alive."""
        previous = {IngressKey("locked", "secret"), IngressKey("store", "old")}

        deleted = detect_deletions(previous, set(), failed_namespaces=["locked"])

        assert deleted == [IngressKey("store", "old")]

    def test_unwalked_namespaces_are_not_reported(self):
        """Test keys outside the namespaces walked this run are kept alive."""
        previous = {IngressKey("other", "still-there"), IngressKey("store", "web")}

        deleted = detect_deletions(previous, set(), walked_namespaces=["store"])

        assert deleted == [IngressKey("store", "web")]
