# blackboard/wizard/commit.py
import logging
from typing import Awaitable, Callable

from aiogram import Bot

from ..i18n import Translator
from ..models import Order, OrderKind, Scope
from ..orders import OrderPublisher, find_order
from ..sessions import WizardSession
from ..storage import OrderIdAllocator, OrderStorage
from ..utils.titles import apply_title_prefix
from .fields import is_complete
from .presenter import QuestionPresenter

logger = logging.getLogger(__name__)

ModeratorLookup = Callable[[Bot, int, int], Awaitable[bool]]


class IncompleteDraftError(ValueError):
    pass


class OrderCommitter:
    """
    Turns a confirmed draft into a stored, published order:

      1) re-check moderator capability for community scope,
      2) allocate the id and normalize the title prefix,
      3) persist, publish into the origin group, persist the post ids,
      4) replace the summary in the DM with the success card.

    Publishing is best-effort. A failed first save propagates to the caller;
    the saved order is remembered on the session, so a retried confirm only
    runs the steps that have not happened yet.
    """

    def __init__(
            self,
            storage: OrderStorage,
            ids: OrderIdAllocator,
            publisher: OrderPublisher,
            presenter: QuestionPresenter,
            t: Translator,
            moderator_check: ModeratorLookup,
    ):
        self.storage = storage
        self.ids = ids
        self.publisher = publisher
        self.presenter = presenter
        self.t = t
        self.moderator_check = moderator_check

    async def commit(self, bot: Bot, session: WizardSession) -> Order:
        guild_id = session.guild_id
        order = session.saved_order
        if order is None:
            order = await self._save_new(bot, session)
        else:
            logger.info("Resuming commit of saved order: guild=%s id=%s", guild_id, order.id)

        if order.message_id is None:
            posted = await self.publisher.publish(bot, guild_id, session.origin_chat_id, order)
            if posted is not None:
                order.chat_id = posted.chat.id
                order.message_id = posted.message_id
                logger.info("Order published: guild=%s id=%s message=%s", guild_id, order.id, order.message_id)
                self._save_post(guild_id, order)

        await self.presenter.show_success(bot, session, order)
        return order

    async def _save_new(self, bot: Bot, session: WizardSession) -> Order:
        guild_id = session.guild_id
        draft = session.draft.copy()

        if not is_complete(draft):
            raise IncompleteDraftError(f"Draft of key={session.key} is not complete")

        if draft.scope == Scope.COMMUNITY:
            if not await self.moderator_check(bot, guild_id, session.user_id):
                logger.info("Scope downgraded to personal for key=%s (not a moderator)", session.key)
                draft.scope = Scope.PERSONAL

        # a retry after a failed save keeps the id it was given
        if session.order_id is None:
            session.order_id = self.ids.next_id(guild_id)

        kind = session.kind or OrderKind.BUY
        title = apply_title_prefix(self.t, kind, draft.title, guild_id)
        order = Order.from_draft(draft, session.order_id, kind, title)

        orders = self.storage.load_orders(guild_id)
        orders.append(order)
        self.storage.save_orders(guild_id, orders)
        session.saved_order = order
        logger.info("Order saved: guild=%s id=%s kind=%s owner=%s", guild_id, order.id, kind.value, order.owner_id)
        return order

    def _save_post(self, guild_id: int, order: Order) -> None:
        """The order is stored and visible at this point, so failures only cost the post link."""
        try:
            orders = self.storage.load_orders(guild_id)
            stored = find_order(orders, order.id)
            if stored is None:
                return
            stored.chat_id = order.chat_id
            stored.message_id = order.message_id
            stored.post_has_image = order.post_has_image
            self.storage.save_orders(guild_id, orders)
        except Exception as e:
            logger.error("Failed to store post of order guild=%s id=%s: %s", guild_id, order.id, e, exc_info=True)
