# blackboard/wizard/callbacks.py
"""
Typed callback_data for every inline button the bot sends.

Everything needed to route a press is inside the packed string (Telegram
allows 64 bytes), including the session key, so no handler has to guess the
session from the chat the press came from.
"""
from enum import Enum
from typing import Optional

from aiogram.filters.callback_data import CallbackData

from ..sessions import SessionKey
from .fields import Field


class WizardAction(str, Enum):
    KIND = "kind"
    CHOICE = "choice"
    PICK = "pick"
    BACK = "back"
    RESET = "reset"
    NEXT = "next"
    CONFIRM = "confirm"
    CANCEL = "cancel"


class WizardCB(CallbackData, prefix="wz"):
    action: WizardAction
    guild_id: int
    user_id: int
    field: Optional[Field] = None
    value: Optional[str] = None

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.guild_id, self.user_id)

    @classmethod
    def for_key(
            cls,
            key: SessionKey,
            action: WizardAction,
            field: Optional[Field] = None,
            value: Optional[str] = None,
    ) -> str:
        return cls(
            action=action,
            guild_id=key.guild_id,
            user_id=key.user_id,
            field=field,
            value=value,
        ).pack()


class OrderAction(str, Enum):
    CLAIM = "claim"
    UNCLAIM = "unclaim"
    CLOSE = "close"
    REOPEN = "reopen"
    REMOVE = "remove"


class OrderCB(CallbackData, prefix="bo"):
    action: OrderAction
    order_id: int
