# blackboard/wizard/engine.py
import asyncio
import logging
from typing import Awaitable, Callable, Optional

from aiogram import Bot

from ..i18n import Translator
from ..models import OrderKind, Scope
from ..sessions import SessionKey, SessionStore, WizardSession
from .callbacks import WizardAction, WizardCB
from .commit import OrderCommitter
from .fields import ITEM_FIELDS, AnswerError, Field, coerce_choice, parse_answer
from .machine import (
    Answered,
    Asking,
    BackPressed,
    CancelPressed,
    Cancelled,
    Confirmed,
    Done,
    KindChosen,
    NextPressed,
    ResetPressed,
    Summary,
    WizardEvent,
    transition,
)
from .presenter import QuestionPresenter
from .resolver import Candidates, ItemResolver, NotFound, ResolvedSingle

logger = logging.getLogger(__name__)

ModeratorLookup = Callable[[Bot, int, int], Awaitable[bool]]


class WizardEngine:
    """
    Glue between Telegram updates and the pure state machine.

    Every entry point takes the per-session lock, so updates of one session
    never interleave. After each await the session is read again from the
    store: it may have expired or been replaced in the meantime.

    Callback entry points return the text for the callback answer (None when
    nothing has to be said); text entry points send notices as messages.
    """

    def __init__(
            self,
            store: SessionStore,
            resolver: ItemResolver,
            presenter: QuestionPresenter,
            committer: OrderCommitter,
            t: Translator,
            moderator_check: ModeratorLookup,
    ):
        self.store = store
        self.resolver = resolver
        self.presenter = presenter
        self.committer = committer
        self.t = t
        self.moderator_check = moderator_check

    def _current(self, session: WizardSession) -> Optional[WizardSession]:
        current = self.store.get(session.key)
        return current if current is session else None

    # ===== start =====

    async def start(
            self,
            bot: Bot,
            guild_id: int,
            user_id: int,
            origin_chat_id: int,
            private_chat_id: int,
            owner_name: str = "",
    ) -> WizardSession:
        """
        Opens a wizard in the user's private chat. A running wizard of the same
        user in the same group is replaced. Telegram errors while sending the
        first DM propagate after the session is dropped again.
        """
        key = SessionKey(guild_id, user_id)
        async with self.store.lock(key):
            old = self.store.get(key)
            if old is not None:
                await self.presenter.strip_live(bot, old)

            session = self.store.create(guild_id, user_id, origin_chat_id, private_chat_id, owner_name)
            try:
                await self.presenter.present_kind_choice(bot, session)
            except Exception:
                self.store.delete(key)
                raise
            return session

    # ===== callbacks =====

    async def handle_callback(self, bot: Bot, cb: WizardCB) -> Optional[str]:
        async with self.store.lock(cb.key):
            session = self.store.get(cb.key)
            if session is None:
                return self.t(cb.guild_id, "wizard.expired")

            session.touch()
            action = cb.action

            if action == WizardAction.KIND:
                try:
                    kind = OrderKind(cb.value)
                except ValueError:
                    return self.t(session.guild_id, "wizard.chooseKindFirst")
                return await self._apply(bot, session, KindChosen(kind))

            if action == WizardAction.CHOICE:
                if cb.field is None:
                    return self.t(session.guild_id, "wizard.staleQuestion")
                try:
                    value = coerce_choice(cb.field, cb.value)
                except AnswerError as e:
                    return self.t(session.guild_id, e.key, **e.variables)
                return await self._answer(bot, session, cb.field, value)

            if action == WizardAction.PICK:
                return await self._pick(bot, session, cb.field, cb.value)

            if action == WizardAction.BACK:
                return await self._apply(bot, session, BackPressed(cb.field))
            if action == WizardAction.RESET:
                return await self._apply(bot, session, ResetPressed(cb.field))
            if action == WizardAction.NEXT:
                return await self._apply(bot, session, NextPressed(cb.field))
            if action == WizardAction.CONFIRM:
                return await self._apply(bot, session, Confirmed())
            if action == WizardAction.CANCEL:
                return await self._apply(bot, session, CancelPressed())

            logger.warning("Unhandled wizard action %s for key=%s", action, cb.key)
            return None

    async def _pick(self, bot: Bot, session: WizardSession, field: Optional[Field], value: Optional[str]) -> Optional[str]:
        g = session.guild_id
        if field is None or session.pending_pick != field or session.await_field != field:
            return self.t(g, "wizard.staleQuestion")
        try:
            item_id = int(value or "")
        except ValueError:
            return self.t(g, "wizard.staleQuestion")
        if item_id not in session.candidate_ids:
            return self.t(g, "wizard.staleQuestion")

        session.pending_pick = None
        session.candidate_ids = []
        await self.presenter.close_picker(bot, session, item_id)
        return await self._apply(bot, session, Answered(field, item_id))

    # ===== typed answers =====

    async def handle_text(self, bot: Bot, private_chat_id: int, user_id: int, text: str) -> bool:
        """
        Routes a typed DM answer to the user's most recent wizard.
        Returns False when the user has no wizard running in this chat.
        """
        session = self.store.find_private(private_chat_id, user_id)
        if session is None:
            return False

        async with self.store.lock(session.key):
            session = self._current(session)
            if session is None:
                return False
            session.touch()

            field = session.await_field
            if field is None:
                if isinstance(session.state, Summary):
                    key = "wizard.useSummaryButtons"
                else:
                    key = "wizard.chooseKindFirst"
                await self.presenter.notify(bot, session, self.t(session.guild_id, key))
                return True

            if field in ITEM_FIELDS:
                notice = await self._resolve_item(bot, session, field, text)
            else:
                try:
                    value = parse_answer(field, text)
                except AnswerError as e:
                    notice = self.t(session.guild_id, e.key, **e.variables)
                else:
                    notice = await self._answer(bot, session, field, value)

            if notice:
                current = self._current(session)
                if current is not None:
                    await self.presenter.notify(bot, current, notice)
            return True

    async def _resolve_item(self, bot: Bot, session: WizardSession, field: Field, text: str) -> Optional[str]:
        g = session.guild_id
        resolution = await self.resolver.resolve(text)

        if self._current(session) is None or session.await_field != field:
            return None

        if isinstance(resolution, NotFound):
            return self.t(g, "wizard.error.noneFound", q=resolution.query)

        if isinstance(resolution, Candidates):
            session.pending_pick = field
            session.candidate_ids = [c.item_id for c in resolution.items]
            await self.presenter.present_candidates(bot, session, field, text.strip(), resolution.items)
            return None

        if isinstance(resolution, ResolvedSingle):
            if session.picker_msg_id:
                await self.presenter.close_picker(bot, session, resolution.item_id)
            session.pending_pick = None
            session.candidate_ids = []
            return await self._apply(bot, session, Answered(field, resolution.item_id))

        raise ValueError(f"Unknown item resolution: {resolution!r}")

    async def _answer(self, bot: Bot, session: WizardSession, field: Field, value) -> Optional[str]:
        is_mod = False
        if field == Field.SCOPE and value == Scope.COMMUNITY:
            is_mod = await self.moderator_check(bot, session.guild_id, session.user_id)
            if self._current(session) is None:
                return None
        return await self._apply(bot, session, Answered(field, value, is_moderator=is_mod))

    # ===== effects =====

    async def _apply(self, bot: Bot, session: WizardSession, event: WizardEvent) -> Optional[str]:
        """Runs one transition and performs its effects. Returns a rejection notice, if any."""
        previous = session.state
        step = transition(previous, event, session.draft)

        if not step.changed:
            if step.strip:
                await self.presenter.strip_controls(bot, session, step.strip)
            if step.present and isinstance(step.state, Asking):
                await self.presenter.present(bot, session)
            return self.t(session.guild_id, step.rejected)

        session.draft = step.draft
        session.state = step.state
        if step.kind is not None:
            session.kind = step.kind
            await self.presenter.close_kind_choice(bot, session)

        if step.freeze:
            await self.presenter.freeze(bot, session, step.freeze)
        if step.strip:
            await self.presenter.strip_controls(bot, session, step.strip)

        state = step.state
        if isinstance(state, Asking) and step.present:
            await self.presenter.present(bot, session)
        elif isinstance(state, Summary) and step.present:
            await self.presenter.present_summary(bot, session)
        elif isinstance(state, Done):
            return await self._finish(bot, session)
        elif isinstance(state, Cancelled):
            await self.presenter.show_cancelled(bot, session, previous)
            self.store.delete(session.key)
            logger.info("Wizard cancelled key=%s", session.key)
        return None

    async def _finish(self, bot: Bot, session: WizardSession) -> Optional[str]:
        try:
            order = await self.committer.commit(bot, session)
        except Exception as e:
            logger.error("Commit failed for key=%s: %s", session.key, e)
            session.state = Summary()
            return self.t(session.guild_id, "wizard.commitFailed")

        self.store.delete(session.key)
        logger.info("Wizard finished key=%s order=%s", session.key, order.id)
        return None

    # ===== cancel / expiry =====

    async def cancel_private(self, bot: Bot, private_chat_id: int, user_id: int) -> bool:
        session = self.store.find_private(private_chat_id, user_id)
        if session is None:
            return False
        async with self.store.lock(session.key):
            session = self._current(session)
            if session is None:
                return False
            await self._apply(bot, session, CancelPressed())
            return True

    async def expire_idle(self, bot: Bot) -> int:
        expired = self.store.expire_idle()
        for session in expired:
            await self.presenter.show_expired(bot, session)
        return len(expired)

    async def run_expiry_loop(self, bot: Bot, interval: int) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await self.expire_idle(bot)
            except Exception as e:
                logger.error("Session expiry sweep failed: %s", e)
