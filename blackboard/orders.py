# blackboard/orders.py
import asyncio
import html
import logging
import shlex
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.types import BufferedInputFile, InlineKeyboardButton, InlineKeyboardMarkup, Message

from .api_client import ItemCatalogClient, ItemInfo
from .i18n import Translator
from .models import Assignment, CompensationKind, Order, QuantityMode, Scope
from .storage import OrderStorage
from .utils.item_card import build_tooltip_lines, format_price, render_item_card
from .utils.numbers import is_numeric
from .utils.titles import apply_title_prefix
from .wizard.callbacks import OrderAction, OrderCB
from .wizard.fields import ATTRS, ITEM_FIELDS, AnswerError, Field, parse_answer

logger = logging.getLogger(__name__)

CAPTION_LIMIT = 1024
PLACEHOLDER = "—"

ModeratorLookup = Callable[[Bot, int, int], Awaitable[bool]]


class BoardError(Exception):
    """Refused board action; `key` is the i18n key shown to the user."""

    def __init__(self, key: str, **variables: Any):
        super().__init__(key)
        self.key = key
        self.variables = variables


# ===== rules =====

def claim(order: Order, user_id: int, user_name: str = "") -> None:
    if order.closed:
        raise BoardError("board.closed")
    if user_id in order.claimants:
        raise BoardError("board.alreadyClaimed")
    if order.assignment == Assignment.SINGLE and order.claimants:
        raise BoardError("board.taken")
    order.claimants.append(user_id)
    if user_name:
        order.claimant_names[user_id] = user_name


def unclaim(order: Order, user_id: int) -> None:
    if user_id not in order.claimants:
        raise BoardError("board.notClaimed")
    order.claimants = [u for u in order.claimants if u != user_id]
    order.claimant_names.pop(user_id, None)


def close(order: Order) -> None:
    if order.closed:
        raise BoardError("board.alreadyClosed")
    order.closed = True


def reopen(order: Order) -> None:
    if not order.closed:
        raise BoardError("board.notClosed")
    order.closed = False


def can_manage(order: Order, user_id: int, is_moderator: bool) -> bool:
    return order.owner_id == user_id or is_moderator


# ===== edits =====

# accepted `name=` keys of /edit, mapped to the wizard field they change
EDIT_KEYS: Dict[str, Field] = {f.value: f for f in Field}
EDIT_KEYS.update(
    {
        "item_id": Field.ITEM,
        "quantity_mode": Field.QUANTITY_MODE,
        "mode": Field.ASSIGNMENT,
        "assignment": Field.ASSIGNMENT,
        "reward": Field.COMPENSATION_KIND,
        "reward_type": Field.COMPENSATION_KIND,
        "reward_item": Field.COMPENSATION_ITEM,
        "reward_item_id": Field.COMPENSATION_ITEM,
        "reward_quantity": Field.COMPENSATION_QUANTITY,
        "reward_per": Field.COMPENSATION_UNIT,
    }
)
OWNER_KEYS = ("owner", "requester")


def parse_edit_args(args: Optional[str]) -> Tuple[int, Dict[str, Any]]:
    """
    `<id> name=value ...` -> (order id, {order attribute: parsed value}).
    Values with spaces are quoted: title="Copper Ore run".
    """
    try:
        tokens = shlex.split(args or "")
    except ValueError:
        raise BoardError("edit.usage")
    if len(tokens) < 2 or not is_numeric(tokens[0]):
        raise BoardError("edit.usage")

    changes: Dict[str, Any] = {}
    for token in tokens[1:]:
        name, sep, raw = token.partition("=")
        name = name.strip().lower()
        if not sep:
            raise BoardError("edit.usage")

        if name in OWNER_KEYS:
            if not raw.strip():
                raise BoardError("edit.badValue", field=name)
            changes["owner_name"] = raw.strip()
            continue

        field = EDIT_KEYS.get(name)
        if field is None:
            raise BoardError("edit.unknownField", field=name)
        if field in ITEM_FIELDS:
            if not is_numeric(raw) or int(raw) <= 0:
                raise BoardError("edit.itemId", field=name)
            value: Any = int(raw)
        else:
            try:
                value = parse_answer(field, raw)
            except AnswerError as e:
                raise BoardError(e.key, **e.variables)
        changes[ATTRS[field]] = value
    return int(tokens[0]), changes


def apply_edit(order: Order, changes: Dict[str, Any], is_moderator: bool) -> Order:
    """
    Edited copy of `order`. Dependent values are cleared the way the wizard
    clears them; community scope needs a moderator and is downgraded otherwise.
    """
    updated = order.model_copy(update=changes, deep=True)

    if updated.compensation_kind != CompensationKind.ITEM:
        updated.compensation_item_id = None
    elif updated.compensation_item_id is None:
        raise BoardError("edit.rewardItemMissing")

    if updated.quantity_mode == QuantityMode.UNLIMITED:
        updated.quantity = None
    elif updated.quantity is None:
        raise BoardError("edit.quantityMissing")

    if updated.scope == Scope.COMMUNITY and not is_moderator:
        updated.scope = Scope.PERSONAL
    return updated


def find_order(orders: List[Order], order_id: int) -> Optional[Order]:
    for o in orders:
        if o.id == order_id:
            return o
    return None


# ===== public post =====

def _user_link(user_id: int, name: str) -> str:
    return f'<a href="tg://user?id={user_id}">{html.escape(name or str(user_id))}</a>'


class OrderPublisher:
    """Builds and maintains the public post of an order in its group."""

    def __init__(self, t: Translator, catalog: ItemCatalogClient):
        self.t = t
        self.catalog = catalog

    def _label(self, guild_id: int, key: str, fallback: str) -> str:
        value = self.t(guild_id, key)
        return fallback if value == key else value

    def render_text(self, guild_id: int, order: Order, item: ItemInfo, reward_item: Optional[ItemInfo]) -> str:
        t = self.t
        g = guild_id

        status = t(g, "board.status.closed") if order.closed else t(g, "board.status.open")
        owner_label = t(g, f"board.owner.{order.kind.value}")

        if order.quantity_mode == QuantityMode.UNLIMITED:
            qty = "∞"
        else:
            mode = self._label(g, f"choice.qmode.{order.quantity_mode.value}", order.quantity_mode.value)
            qty = f"{order.quantity} ({mode})"

        unit = self._label(g, f"choice.cunit.{order.compensation_unit.value}", order.compensation_unit.value)
        if order.compensation_kind == CompensationKind.ITEM and reward_item is not None:
            reward = f"{order.compensation_quantity} × {reward_item.name} (ID {reward_item.id}) {unit}"
        else:
            reward = f"{order.compensation_quantity} {t(g, 'wizard.currencyUnit')} {unit}"

        if order.claimants:
            claimed = ", ".join(
                _user_link(uid, order.claimant_names.get(uid, "")) for uid in order.claimants
            )
        else:
            claimed = PLACEHOLDER

        lines = [
            f"📌 <b>{html.escape(order.title)}</b>",
            f"#{order.id} · {html.escape(status)}",
            "",
            f"<b>{html.escape(owner_label)}:</b> {_user_link(order.owner_id, order.owner_name)}",
            f"<b>{html.escape(t(g, 'wizard.summary.item'))}:</b> {html.escape(item.name)} (ID {item.id})",
            f"<b>{html.escape(t(g, 'wizard.summary.qty'))}:</b> {html.escape(qty)}",
            f"<b>{html.escape(t(g, 'wizard.summary.mode'))}:</b> "
            f"{html.escape(self._label(g, f'choice.assign.{order.assignment.value}', order.assignment.value))}",
            f"<b>{html.escape(t(g, 'wizard.summary.scope'))}:</b> "
            f"{html.escape(self._label(g, f'choice.scope.{order.scope.value}', order.scope.value))}",
            f"<b>{html.escape(t(g, 'wizard.summary.reward'))}:</b> {html.escape(reward)}",
            f"<b>{html.escape(t(g, 'board.claimedBy'))}:</b> {claimed}",
        ]
        return "\n".join(lines)

    def keyboard(self, guild_id: int, order: Order) -> InlineKeyboardMarkup:
        g = guild_id
        rows = []
        if not order.closed:
            rows.append(
                [
                    InlineKeyboardButton(
                        text=f"🙋 {self.t(g, 'board.button.claim')}",
                        callback_data=OrderCB(action=OrderAction.CLAIM, order_id=order.id).pack(),
                    ),
                    InlineKeyboardButton(
                        text=f"↩️ {self.t(g, 'board.button.unclaim')}",
                        callback_data=OrderCB(action=OrderAction.UNCLAIM, order_id=order.id).pack(),
                    ),
                ]
            )
            toggle = InlineKeyboardButton(
                text=f"🔒 {self.t(g, 'board.button.close')}",
                callback_data=OrderCB(action=OrderAction.CLOSE, order_id=order.id).pack(),
            )
        else:
            toggle = InlineKeyboardButton(
                text=f"🔓 {self.t(g, 'board.button.reopen')}",
                callback_data=OrderCB(action=OrderAction.REOPEN, order_id=order.id).pack(),
            )
        rows.append(
            [
                toggle,
                InlineKeyboardButton(
                    text=f"🗑 {self.t(g, 'board.button.remove')}",
                    callback_data=OrderCB(action=OrderAction.REMOVE, order_id=order.id).pack(),
                ),
            ]
        )
        return InlineKeyboardMarkup(inline_keyboard=rows)

    async def _lookup(self, order: Order):
        item = await self.catalog.get_item_info(order.item_id)
        reward_item = None
        if order.compensation_kind == CompensationKind.ITEM and order.compensation_item_id:
            reward_item = await self.catalog.get_item_info(order.compensation_item_id)
        return item, reward_item

    async def render_card(self, guild_id: int, order: Order, item: ItemInfo) -> Optional[bytes]:
        """PNG tooltip card of the ordered item, None when it cannot be drawn."""
        if not item.found:
            return None
        try:
            icon = await self.catalog.fetch_icon(item.icon_url)
            price = format_price(item.vendor_sell)
            price_text = f"{self.t(guild_id, 'tooltip.sellPrice')}: {price}" if price else None
            return await asyncio.to_thread(
                render_item_card,
                item.name,
                build_tooltip_lines(item, self.t, guild_id),
                price_text,
                icon,
                item.quality,
            )
        except Exception as e:
            logger.warning("Item card rendering failed for order=%s item=%s: %s", order.id, order.item_id, e)
            return None

    async def publish(self, bot: Bot, guild_id: int, chat_id: int, order: Order) -> Optional[Message]:
        """
        Posts the order into its group. Returns the sent message, or None when
        Telegram refused it; the order then simply has no public post.
        """
        item, reward_item = await self._lookup(order)
        text = self.render_text(guild_id, order, item, reward_item)
        markup = self.keyboard(guild_id, order)
        card = await self.render_card(guild_id, order, item)

        if card is not None and len(text) <= CAPTION_LIMIT:
            try:
                sent = await bot.send_photo(
                    chat_id,
                    BufferedInputFile(card, filename=f"order-{order.id}.png"),
                    caption=text,
                    reply_markup=markup,
                )
                order.post_has_image = True
                return sent
            except TelegramAPIError as e:
                logger.warning("Photo post failed for order=%s, falling back to text: %s", order.id, e)

        try:
            sent = await bot.send_message(chat_id, text, reply_markup=markup)
        except TelegramAPIError as e:
            logger.error("Failed to publish order=%s to chat=%s: %s", order.id, chat_id, e)
            return None
        order.post_has_image = False
        return sent

    async def refresh(self, bot: Bot, guild_id: int, order: Order) -> bool:
        """Re-renders the public post. False when there is none or Telegram refused the edit."""
        if order.chat_id is None or order.message_id is None:
            return False
        item, reward_item = await self._lookup(order)
        text = self.render_text(guild_id, order, item, reward_item)
        markup = self.keyboard(guild_id, order)
        try:
            if order.post_has_image:
                await bot.edit_message_caption(
                    chat_id=order.chat_id,
                    message_id=order.message_id,
                    caption=text,
                    reply_markup=markup,
                )
            else:
                await bot.edit_message_text(
                    text=text,
                    chat_id=order.chat_id,
                    message_id=order.message_id,
                    reply_markup=markup,
                )
        except TelegramBadRequest as e:
            if "not modified" not in str(e).lower():
                logger.warning("Failed to refresh post of order=%s: %s", order.id, e)
                return False
        except TelegramAPIError as e:
            logger.warning("Failed to refresh post of order=%s: %s", order.id, e)
            return False
        return True

    async def delete_post(self, bot: Bot, order: Order) -> None:
        if order.chat_id is None or order.message_id is None:
            return
        try:
            await bot.delete_message(chat_id=order.chat_id, message_id=order.message_id)
        except TelegramAPIError as e:
            logger.warning("Failed to delete post of order=%s: %s", order.id, e)


class OrderBoard:
    """Load-modify-save of board actions plus public post refresh."""

    def __init__(
            self,
            storage: OrderStorage,
            publisher: OrderPublisher,
            t: Translator,
            moderator_check: ModeratorLookup,
    ):
        self.storage = storage
        self.publisher = publisher
        self.t = t
        self.moderator_check = moderator_check

    async def handle(
            self,
            bot: Bot,
            guild_id: int,
            action: OrderAction,
            order_id: int,
            user_id: int,
            user_name: str = "",
    ) -> str:
        """Runs one button press and returns the text for the callback answer."""
        orders = self.storage.load_orders(guild_id)
        order = find_order(orders, order_id)
        if order is None:
            return self.t(guild_id, "board.notFound", id=order_id)

        try:
            if action in (OrderAction.CLOSE, OrderAction.REOPEN, OrderAction.REMOVE):
                is_mod = await self.moderator_check(bot, guild_id, user_id)
                if not can_manage(order, user_id, is_mod):
                    raise BoardError("board.noPermission")

            if action == OrderAction.CLAIM:
                claim(order, user_id, user_name)
            elif action == OrderAction.UNCLAIM:
                unclaim(order, user_id)
            elif action == OrderAction.CLOSE:
                close(order)
            elif action == OrderAction.REOPEN:
                reopen(order)
            elif action == OrderAction.REMOVE:
                orders = [o for o in orders if o.id != order_id]
        except BoardError as e:
            return self.t(guild_id, e.key, id=order_id, **e.variables)

        self.storage.save_orders(guild_id, orders)
        logger.info("Board action %s on order=%s guild=%s by user=%s", action.value, order_id, guild_id, user_id)

        if action == OrderAction.REMOVE:
            await self.publisher.delete_post(bot, order)
        else:
            await self.publisher.refresh(bot, guild_id, order)
        return self.t(guild_id, f"board.done.{action.value}", id=order_id)

    async def edit(
            self,
            bot: Bot,
            guild_id: int,
            order_id: int,
            user_id: int,
            changes: Dict[str, Any],
    ) -> str:
        """Applies /edit changes as owner or moderator and refreshes the public post."""
        orders = self.storage.load_orders(guild_id)
        order = find_order(orders, order_id)
        if order is None:
            return self.t(guild_id, "board.notFound", id=order_id)

        is_mod = await self.moderator_check(bot, guild_id, user_id)
        if not can_manage(order, user_id, is_mod):
            return self.t(guild_id, "board.noPermission", id=order_id)

        if "title" in changes:
            changes = dict(changes, title=apply_title_prefix(self.t, order.kind, changes["title"], guild_id))
        try:
            updated = apply_edit(order, changes, is_mod)
        except BoardError as e:
            return self.t(guild_id, e.key, id=order_id, **e.variables)

        orders = [updated if o.id == order_id else o for o in orders]
        self.storage.save_orders(guild_id, orders)
        logger.info("Order edited: guild=%s id=%s by user=%s fields=%s", guild_id, order_id, user_id, sorted(changes))

        if await self.publisher.refresh(bot, guild_id, updated):
            return self.t(guild_id, "edit.done", id=order_id)
        return self.t(guild_id, "edit.doneNoPost", id=order_id)

    def list_text(self, guild_id: int, include_closed: bool = False) -> str:
        orders = [o for o in self.storage.load_orders(guild_id) if include_closed or not o.closed]
        if not orders:
            return html.escape(self.t(guild_id, "board.listEmpty"))

        lines = [f"<b>{html.escape(self.t(guild_id, 'board.listTitle'))}</b>", ""]
        for o in sorted(orders, key=lambda x: x.id):
            mark = "🔒" if o.closed else "🟢"
            lines.append(
                f"{mark} #{o.id} {html.escape(o.title)} · "
                f"{html.escape(self.t(guild_id, 'board.claimedCount', n=len(o.claimants)))}"
            )
        return "\n".join(lines)
