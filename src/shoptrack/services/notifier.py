from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

SUCCESS = "success"
ERROR = "error"


@dataclass(frozen=True)
class Notice:
    level: str
    message: str
    created_at: datetime


class Notifier:
    """Holds the most recent transient notices for whatever view is showing them."""

    def __init__(self, maxlen: int = 20, listener: Optional[Callable[[Notice], None]] = None):
        self._notices: deque[Notice] = deque(maxlen=maxlen)
        self.listener = listener

    def success(self, message: str) -> Notice:
        return self._push(SUCCESS, message)

    def error(self, message: str) -> Notice:
        return self._push(ERROR, message)

    def _push(self, level: str, message: str) -> Notice:
        notice = Notice(level=level, message=message, created_at=datetime.now())
        self._notices.append(notice)
        if self.listener is not None:
            self.listener(notice)
        return notice

    def latest(self) -> Optional[Notice]:
        return self._notices[-1] if self._notices else None

    def drain(self) -> list[Notice]:
        out = list(self._notices)
        self._notices.clear()
        return out
