"""Persistence port stored as JSON files in a local directory.

Stands in for the remote sink when the app runs on its own: sessions,
answers and activity logs each get a file per session.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from pathlib import Path

from proctor_quiz.core.errors import TransientIOError
from proctor_quiz.core.models import SessionSnapshot
from proctor_quiz.core.schemas import dump_snapshot, load_snapshot
from proctor_quiz.utils.json_files import read_json, write_json_atomic, write_text_atomic

logger = logging.getLogger(__name__)


class LocalPersistence:
    def __init__(self, root: Path) -> None:
        self._root = Path(root)
        self._lock = asyncio.Lock()

    async def save_session(self, session: SessionSnapshot) -> None:
        await self._run(write_text_atomic, self._root / "sessions" / f"{session.id}.json", dump_snapshot(session))

    async def load_session(self, session_id: str) -> SessionSnapshot | None:
        path = self._root / "sessions" / f"{session_id}.json"
        if not path.exists():
            return None
        raw = await self._run(path.read_text, encoding="utf-8")
        return load_snapshot(raw)

    async def append_activity_log(
        self,
        user_id: str | None,
        session_id: str,
        event_kind: str,
        detail: str | None,
    ) -> None:
        async with self._lock:
            path = self._root / "activity" / f"{session_id}.json"
            entries = read_json(path, default=[])
            entries.append(
                {
                    "user_id": user_id,
                    "event_kind": event_kind,
                    "detail": detail,
                    "logged_at": datetime.now(timezone.utc).isoformat(),
                }
            )
            await self._run(write_json_atomic, path, entries)

    async def upsert_answer(
        self,
        user_id: str | None,
        session_id: str,
        question_id: str,
        answer: str,
    ) -> None:
        async with self._lock:
            path = self._root / "answers" / f"{session_id}.json"
            document = read_json(path, default={"user_id": user_id, "answers": {}})
            document["answers"][question_id] = answer
            await self._run(write_json_atomic, path, document)

    async def load_answers(self, session_id: str) -> dict[str, str]:
        document = read_json(self._root / "answers" / f"{session_id}.json", default={"answers": {}})
        return dict(document["answers"])

    async def load_activity_log(self, session_id: str) -> list[dict[str, object]]:
        return list(read_json(self._root / "activity" / f"{session_id}.json", default=[]))

    @staticmethod
    async def _run(func, *args, **kwargs):
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except OSError as exc:
            raise TransientIOError(str(exc)) from exc
