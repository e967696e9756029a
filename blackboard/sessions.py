# blackboard/sessions.py
import asyncio
import logging
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, NamedTuple, Optional

from .models import Draft, Order, OrderKind
from .wizard.fields import Field
from .wizard.machine import Asking, AwaitingKind, WizardState

logger = logging.getLogger(__name__)


class SessionKey(NamedTuple):
    guild_id: int
    user_id: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class WizardSession:
    guild_id: int
    user_id: int
    origin_chat_id: int
    private_chat_id: int
    draft: Draft
    kind: Optional[OrderKind] = None
    state: WizardState = field(default_factory=AwaitingKind)
    msg_ids: Dict[Field, int] = field(default_factory=dict)
    kind_msg_id: Optional[int] = None
    summary_msg_id: Optional[int] = None
    picker_msg_id: Optional[int] = None
    pending_pick: Optional[Field] = None
    candidate_ids: List[int] = field(default_factory=list)
    order_id: Optional[int] = None
    saved_order: Optional[Order] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.guild_id, self.user_id)

    @property
    def await_field(self) -> Optional[Field]:
        return self.state.field if isinstance(self.state, Asking) else None

    def touch(self) -> None:
        self.updated_at = _now()


class SessionStore:
    """
    In-memory registry of running wizards, one per (guild, user).

    Owned by the application root and handed to the engine. Starting a wizard
    for a key that already has one replaces it. Each key has its own
    asyncio.Lock so events of one session run one at a time.
    """

    def __init__(self, idle_seconds: int = 1800):
        self.idle_seconds = idle_seconds
        self._sessions: Dict[SessionKey, WizardSession] = {}
        # a lock lives as long as a holder or waiter references it
        self._locks: "weakref.WeakValueDictionary[SessionKey, asyncio.Lock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, key: SessionKey) -> bool:
        return key in self._sessions

    def create(
            self,
            guild_id: int,
            user_id: int,
            origin_chat_id: int,
            private_chat_id: int,
            owner_name: str = "",
    ) -> WizardSession:
        key = SessionKey(guild_id, user_id)
        if key in self._sessions:
            logger.info("Replacing existing wizard session key=%s", key)

        session = WizardSession(
            guild_id=guild_id,
            user_id=user_id,
            origin_chat_id=origin_chat_id,
            private_chat_id=private_chat_id,
            draft=Draft(owner_id=user_id, owner_name=owner_name),
        )
        self._sessions[key] = session
        logger.info("Wizard session created key=%s origin=%s", key, origin_chat_id)
        return session

    def get(self, key: SessionKey) -> Optional[WizardSession]:
        return self._sessions.get(key)

    def delete(self, key: SessionKey) -> Optional[WizardSession]:
        session = self._sessions.pop(key, None)
        if session is not None:
            logger.info("Wizard session removed key=%s", key)
        return session

    def find_private(self, private_chat_id: int, user_id: int) -> Optional[WizardSession]:
        """Most recently active session of this user in this private chat."""
        matches = [
            s for s in self._sessions.values()
            if s.user_id == user_id and s.private_chat_id == private_chat_id
        ]
        if not matches:
            return None
        return max(matches, key=lambda s: s.updated_at)

    def lock(self, key: SessionKey) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    def expire_idle(self, now: Optional[datetime] = None) -> List[WizardSession]:
        now = now or _now()
        expired: List[WizardSession] = []
        for key, session in list(self._sessions.items()):
            if (now - session.updated_at).total_seconds() > self.idle_seconds:
                expired.append(self._sessions.pop(key))
                logger.info("Wizard session expired key=%s", key)
        return expired
