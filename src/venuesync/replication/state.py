"""
Replication cursor: how far the minutely feed has been consumed.

The canonical copy lives in a local JSON file; every advance is mirrored to
the blob store so a fresh host (or a wiped disk) resumes instead of replaying
from scratch. Mirror problems never stop the sync, they only mean more replay.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from venuesync.connections.storage import AssetType, BaseStorageConnection, asset_name
from venuesync.exceptions import BlobNotFoundError
from venuesync.replication.types import ReplicationState
from venuesync.utils.files import atomic_write_text, remove_quietly
from venuesync.utils.logging import get_logger

logger = get_logger("venuesync.replication.state")

STATE_ASSET = asset_name(AssetType.SYNC, "osm-replication.state")


def _read_state_file(path: Path) -> ReplicationState | None:
    """Read a state file; None when absent or unreadable."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except OSError as e:
        logger.warning(f"Could not read replication state {path}: {e}")
        return None
    try:
        return ReplicationState.from_dict(json.loads(raw))
    except (ValueError, TypeError, AttributeError) as e:
        logger.warning(f"Ignoring corrupt replication state {path}: {e}")
        return None


class ReplicationStateTracker:
    """Persists and reconciles the consumed sequence number."""

    def __init__(self, state_file: str | Path, mirror: BaseStorageConnection | None = None):
        """
        Args:
            state_file: Canonical local state file
            mirror: Blob store the state is mirrored to (None disables mirroring)
        """
        self.state_file = Path(state_file)
        self.mirror = mirror

    @property
    def _temp_file(self) -> Path:
        return self.state_file.with_name(self.state_file.name + ".temp")

    def get_state(self) -> ReplicationState | None:
        return _read_state_file(self.state_file)

    def get_consumed_sequence(self) -> int:
        """Last fully applied sequence, 0 if never synced."""
        state = self.get_state()
        return state.sequence_number if state else 0

    def advance(self, sequence: int, timestamp: datetime | None = None) -> None:
        """
        Record ``sequence`` as consumed.

        The local write must succeed (errors propagate); the mirror upload is
        best effort. Sequences not ahead of the current one are ignored.
        """
        current = self.get_consumed_sequence()
        if sequence <= current:
            logger.warning(f"Refusing to move replication state from #{current} to #{sequence}")
            return
        self._write(ReplicationState(sequence_number=sequence, timestamp=timestamp or datetime.now(UTC)))

    def override(self, sequence: int) -> ReplicationState:
        """
        Operator reset of the cursor; unlike ``advance`` this may move backwards.

        Raises:
            ValueError: If ``sequence`` is negative
        """
        if sequence < 0:
            raise ValueError(f"Sequence number must be >= 0, got {sequence}")
        previous = self.get_consumed_sequence()
        state = ReplicationState(sequence_number=sequence, timestamp=datetime.now(UTC))
        self._write(state)
        logger.warning(f"Replication state manually set from #{previous} to #{sequence}")
        return state

    def reconcile(self) -> None:
        """
        Adopt the larger of the local and mirrored sequence numbers.

        Never raises: an unreachable or corrupt mirror leaves local state as is.
        """
        if self.mirror is None:
            return

        temp_file = self._temp_file
        try:
            try:
                self.mirror.download_to(STATE_ASSET, temp_file)
            except BlobNotFoundError:
                logger.info("No mirrored replication state yet, keeping local state")
                return

            remote = _read_state_file(temp_file)
            if remote is None:
                return

            local_seq = self.get_consumed_sequence()
            if remote.sequence_number > local_seq:
                logger.info(
                    f"Mirrored replication state #{remote.sequence_number} is ahead of local #{local_seq}, adopting it"
                )
                atomic_write_text(self.state_file, json.dumps(remote.to_dict(), indent=2))
            else:
                logger.debug(f"Local replication state #{local_seq} is current (mirror #{remote.sequence_number})")
        except Exception as e:
            logger.warning(f"Could not reconcile replication state with mirror: {e}")
        finally:
            remove_quietly(temp_file)

    def describe(self) -> dict[str, Any]:
        """Local and mirrored state side by side."""
        local = self.get_state()
        remote: ReplicationState | None = None
        if self.mirror is not None:
            try:
                remote = ReplicationState.from_dict(json.loads(self.mirror.get(STATE_ASSET)))
            except BlobNotFoundError:
                remote = None
            except Exception as e:
                logger.debug(f"Could not read mirrored replication state: {e}")
        return {
            "local": local.to_dict() if local else None,
            "storage": remote.to_dict() if remote else None,
        }

    def _write(self, state: ReplicationState) -> None:
        content = json.dumps(state.to_dict(), indent=2)
        atomic_write_text(self.state_file, content)
        if self.mirror is None:
            return
        try:
            self.mirror.put(STATE_ASSET, content.encode("utf-8"))
        except Exception as e:
            logger.warning(f"Failed to mirror replication state #{state.sequence_number}: {e}")
