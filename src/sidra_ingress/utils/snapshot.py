# ABOUTME: Previous-run snapshot for sidra-ingress-sync deletion detection
# ABOUTME: Persists the set of ingress keys seen so vanished ingresses become DELETE events

"""
Snapshot store for deletion detection.

Kubernetes does not keep deleted Ingress objects around to be listed, so a
one-shot job can only notice a deletion by remembering what it saw last
time. After each run the set of (namespace, name) keys is written to a
small JSON file:

    {
      "generated_at": "2026-01-15T10:30:00+00:00",
      "ingresses": [
        {"namespace": "store", "name": "shop"},
        {"namespace": "store", "name": "shop-admin"}
      ]
    }

On the next run, keys in the file that are no longer listed are reported to
the applier as DELETE events.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import structlog

from sidra_ingress.utils.kube import IngressKey

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

logger = structlog.get_logger(__name__)


class IngressSnapshot:
    """
    Reads and writes the ingress-key snapshot at `path`.

    Neither operation raises on I/O or format problems. A snapshot that
    cannot be read is treated as empty, and one that cannot be written is
    logged. Either way the current run finishes.
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> set[IngressKey]:
        """
        Return the keys recorded by the previous run.

        A missing file means this is the first run and yields an empty set.
        """
        if not self._path.exists():
            logger.info("No previous snapshot, skipping deletion detection", path=str(self._path))
            return set()

        try:
            data = json.loads(self._path.read_text())
            entries = data["ingresses"]
            return {IngressKey(str(e["namespace"]), str(e["name"])) for e in entries}
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.warning("Ignoring unreadable snapshot", path=str(self._path), error=str(e))
            return set()

    def save(self, keys: Iterable[IngressKey]) -> None:
        """Write `keys` as the snapshot for the next run, sorted for stable diffs."""
        data = {
            "generated_at": datetime.now(UTC).isoformat(),
            "ingresses": [
                {"namespace": key.namespace, "name": key.name} for key in sorted(set(keys))
            ],
        }
        try:
            self._path.write_text(json.dumps(data, indent=2) + "\n")
        except OSError as e:
            logger.error("Error writing snapshot", path=str(self._path), error=str(e))
            return
        logger.debug("Snapshot written", path=str(self._path), count=len(data["ingresses"]))


def detect_deletions(
    previous: set[IngressKey],
    current: set[IngressKey],
    failed_namespaces: Iterable[str] = (),
    walked_namespaces: Iterable[str] | None = None,
) -> list[IngressKey]:
    """
    Keys present last run but missing now, in sorted order.

    Only namespaces this run actually listed are considered. Keys in a
    namespace that failed to list, or that was outside `walked_namespaces`,
    are never reported. `walked_namespaces=None` means every namespace was
    listed (cluster-wide).
    """
    skipped = set(failed_namespaces)
    walked = None if walked_namespaces is None else set(walked_namespaces)
    return sorted(
        key
        for key in previous - current
        if key.namespace not in skipped and (walked is None or key.namespace in walked)
    )
