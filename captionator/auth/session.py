"""
Purpose:
- "Current user or none" as an observable value.
- Subscribers are called immediately with the current value and on every change.
"""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class User:
    uid: str
    email: Optional[str]
    display_name: Optional[str] = None
    provider: str = "password"
    id_token: Optional[str] = None
    refresh_token: Optional[str] = None


UserCallback = Callable[[Optional[User]], None]


class AuthSession:
    def __init__(self) -> None:
        self._user: Optional[User] = None
        self._subscribers: List[UserCallback] = []

    @property
    def current_user(self) -> Optional[User]:
        return self._user

    def set_user(self, user: Optional[User]) -> None:
        if user == self._user:
            return
        self._user = user
        for cb in list(self._subscribers):
            cb(user)

    def subscribe(self, callback: UserCallback) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""
        self._subscribers.append(callback)
        callback(self._user)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
