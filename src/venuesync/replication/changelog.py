"""
Human-readable audit trail of cache mutations, one file per day.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path

from venuesync.replication.types import ApplyResult


class ChangeLog:
    """Appends ``=== Diff #<seq> ===`` sections to ``<root>/<YYYY>/<MM>/<DD>.log``."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def path_for(self, when: datetime) -> Path:
        when = when.astimezone(UTC)
        return self.root / f"{when.year:04d}" / f"{when.month:02d}" / f"{when.day:02d}.log"

    def record(self, sequence: int, timestamp: datetime, result: ApplyResult) -> Path | None:
        """Write the entries for one sequence; no-op when the cache is left unchanged."""
        if not result.has_changes or result.rejected:
            return None

        lines = [f"=== Diff #{sequence} ==="]
        for record in result.changed:
            verb = "CREATED" if record.key in result.created_keys else "MODIFIED"
            lines.append(f"- {verb} {record.type.value}/{record.id}: {json.dumps(record.tags, ensure_ascii=False)}")
        for record in result.removed:
            lines.append(f"- REMOVED {record.type.value}/{record.id}")

        path = self.path_for(timestamp)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "a", encoding="utf-8") as f:
            f.write("\n".join(lines) + "\n")
        return path
