"""Per-session user-visible notices."""

from __future__ import annotations

from uuid import uuid4

from proctor_quiz.core.models import Notice, NoticeAction, NoticeLevel
from proctor_quiz.utils.clock import Clock, utc_now


class NoticeBoard:
    """Keeps the notices the page should show, newest last."""

    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._notices: dict[str, list[Notice]] = {}

    def post(
        self,
        session_id: str,
        level: NoticeLevel,
        title: str,
        message: str,
        action: NoticeAction | None = None,
        dismissible: bool = False,
    ) -> Notice:
        notice = Notice(
            id=uuid4().hex,
            session_id=session_id,
            level=level,
            title=title,
            message=message,
            created_at=self._clock(),
            action=action,
            dismissible=dismissible,
        )
        self._notices.setdefault(session_id, []).append(notice)
        return notice

    def warn(self, session_id: str, title: str, message: str) -> Notice:
        return self.post(session_id, NoticeLevel.WARNING, title, message, dismissible=True)

    def block(self, session_id: str, title: str, message: str, action: NoticeAction) -> Notice:
        return self.post(session_id, NoticeLevel.BLOCKING, title, message, action=action)

    def get_notices(self, session_id: str) -> list[Notice]:
        return list(self._notices.get(session_id, []))

    def dismiss(self, session_id: str, notice_id: str) -> bool:
        """Drop a dismissible notice. Blocking and termination notices stay."""
        notices = self._notices.get(session_id, [])
        for notice in notices:
            if notice.id == notice_id:
                if not notice.dismissible:
                    return False
                notices.remove(notice)
                return True
        return False

    def clear_blocking(self, session_id: str) -> None:
        notices = self._notices.get(session_id)
        if notices:
            self._notices[session_id] = [n for n in notices if n.level is not NoticeLevel.BLOCKING]

    def clear(self, session_id: str) -> None:
        self._notices.pop(session_id, None)
