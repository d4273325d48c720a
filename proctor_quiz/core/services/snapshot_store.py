"""Local snapshots: one file per active session, plus the archive of sealed ones."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from proctor_quiz.core.models import SessionSnapshot
from proctor_quiz.core.schemas import dump_snapshot, load_snapshot
from proctor_quiz.utils.json_files import write_text_atomic

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Write after every mutation, read once when a session is opened."""

    def __init__(self, active_dir: Path, archive_dir: Path) -> None:
        self._active_dir = Path(active_dir)
        self._archive_dir = Path(archive_dir)
        self._active_dir.mkdir(parents=True, exist_ok=True)
        self._archive_dir.mkdir(parents=True, exist_ok=True)

    def record(self, snapshot: SessionSnapshot) -> None:
        """Persist a snapshot where its state belongs."""
        if snapshot.is_completed:
            self.archive(snapshot)
        else:
            self.save_active(snapshot)

    def save_active(self, snapshot: SessionSnapshot) -> None:
        write_text_atomic(self._active_path(snapshot.id), dump_snapshot(snapshot))

    def load_active(self, session_id: str) -> SessionSnapshot | None:
        return self._read(self._active_path(session_id))

    def delete_active(self, session_id: str) -> None:
        self._active_path(session_id).unlink(missing_ok=True)

    def archive(self, snapshot: SessionSnapshot) -> None:
        write_text_atomic(self._archive_path(snapshot.id), dump_snapshot(snapshot))
        self.delete_active(snapshot.id)

    def load_archived(self, session_id: str) -> SessionSnapshot | None:
        return self._read(self._archive_path(session_id))

    def load(self, session_id: str) -> SessionSnapshot | None:
        return self.load_active(session_id) or self.load_archived(session_id)

    def list_sessions(self) -> list[SessionSnapshot]:
        """All stored sessions, newest first."""
        snapshots: list[SessionSnapshot] = []
        for directory in (self._active_dir, self._archive_dir):
            for path in directory.glob("*.json"):
                snapshot = self._read(path)
                if snapshot is not None:
                    snapshots.append(snapshot)
        return sorted(snapshots, key=lambda s: s.created_at, reverse=True)

    def delete(self, session_id: str) -> bool:
        existed = self._active_path(session_id).exists() or self._archive_path(session_id).exists()
        self.delete_active(session_id)
        self._archive_path(session_id).unlink(missing_ok=True)
        return existed

    def delete_archived(self) -> list[str]:
        removed: list[str] = []
        for path in self._archive_dir.glob("*.json"):
            path.unlink(missing_ok=True)
            removed.append(path.stem)
        return removed

    def _active_path(self, session_id: str) -> Path:
        return self._active_dir / f"{_safe_name(session_id)}.json"

    def _archive_path(self, session_id: str) -> Path:
        return self._archive_dir / f"{_safe_name(session_id)}.json"

    @staticmethod
    def _read(path: Path) -> SessionSnapshot | None:
        if not path.exists():
            return None
        try:
            return load_snapshot(path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError) as exc:
            logger.warning("Discarding unreadable snapshot %s: %s", path, exc)
            path.unlink(missing_ok=True)
            return None


def _safe_name(session_id: str) -> str:
    cleaned = "".join(ch for ch in session_id if ch.isalnum() or ch in "-_")
    if not cleaned:
        raise ValueError(f"Invalid session id {session_id!r}.")
    return cleaned
