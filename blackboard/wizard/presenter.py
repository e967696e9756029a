# blackboard/wizard/presenter.py
import html
import logging
from typing import List, Optional, Tuple

from aiogram import Bot
from aiogram.exceptions import TelegramAPIError, TelegramBadRequest
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup

from ..api_client import ItemCatalogClient
from ..i18n import Translator
from ..models import CompensationKind, Order, QuantityMode
from ..sessions import WizardSession
from ..utils.titles import apply_title_prefix
from .callbacks import WizardAction, WizardCB
from .fields import CHOICE_FIELDS, Field, get_value, is_relevant, is_satisfied
from .machine import Asking, AwaitingKind, Summary, WizardState
from .resolver import Candidate

logger = logging.getLogger(__name__)

PLACEHOLDER = "—"
CHOICES_PER_ROW = 3
LABEL_MAX = 60


async def safe_edit_text(
        bot: Bot,
        chat_id: int,
        message_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
) -> bool:
    """
    Edits a message in place. "Not modified" counts as success, a missing or
    otherwise uneditable message is logged and skipped.
    """
    try:
        await bot.edit_message_text(
            text=text,
            chat_id=chat_id,
            message_id=message_id,
            reply_markup=reply_markup,
        )
        return True
    except TelegramBadRequest as e:
        if "not modified" in str(e).lower():
            return True
        logger.info("Could not edit message %s in chat %s: %s", message_id, chat_id, e)
        return False
    except TelegramAPIError as e:
        logger.warning("Edit of message %s in chat %s failed: %s", message_id, chat_id, e)
        return False


async def safe_strip_markup(bot: Bot, chat_id: int, message_id: int) -> bool:
    try:
        await bot.edit_message_reply_markup(chat_id=chat_id, message_id=message_id, reply_markup=None)
        return True
    except TelegramBadRequest as e:
        if "not modified" in str(e).lower():
            return True
        logger.info("Could not strip keyboard of %s in chat %s: %s", message_id, chat_id, e)
        return False
    except TelegramAPIError as e:
        logger.warning("Strip keyboard of %s in chat %s failed: %s", message_id, chat_id, e)
        return False


class QuestionPresenter:
    def __init__(self, t: Translator, catalog: Optional[ItemCatalogClient] = None):
        self.t = t
        self.catalog = catalog

    # ===== text helpers =====

    def choice_label(self, guild_id: int, field: Field, value) -> str:
        key = f"choice.{Field(field).value}.{value.value}"
        label = self.t(guild_id, key)
        return value.value if label == key else label

    def value_text(self, session: WizardSession, field: Field) -> str:
        g = session.guild_id
        d = session.draft
        field = Field(field)
        value = get_value(field, d)

        if field == Field.TITLE:
            return value or PLACEHOLDER
        if field == Field.QUANTITY and d.quantity_mode == QuantityMode.UNLIMITED:
            return "∞"
        if field == Field.COMPENSATION_ITEM and not is_relevant(field, d):
            return f"{PLACEHOLDER} ({self.t(g, 'wizard.notNeeded')})"
        if value is None:
            return PLACEHOLDER
        if field in (Field.ITEM, Field.COMPENSATION_ITEM):
            return f"ID {value}"
        if field in CHOICE_FIELDS:
            return self.choice_label(g, field, value)
        return str(value)

    def _question_head(self, session: WizardSession, field: Field) -> str:
        g = session.guild_id
        question = self.t(g, f"wizard.ask.{field.value}")
        hint = self.t(g, f"wizard.hint.{field.value}")
        example = self.t(g, "wizard.card.example")
        return f"❓ <b>{html.escape(question)}</b>\n<i>{html.escape(example)}:</i> {html.escape(hint)}"

    def render_question(self, session: WizardSession, field: Field) -> Tuple[str, InlineKeyboardMarkup]:
        g = session.guild_id
        field = Field(field)

        shown = self.value_text(session, field)
        if field == Field.TITLE and session.draft.title and session.kind:
            shown = apply_title_prefix(self.t, session.kind, session.draft.title, g)

        text = (
            f"{self._question_head(session, field)}\n\n"
            f"{html.escape(self.t(g, 'wizard.card.current'))}: <code>{html.escape(shown)}</code>"
        )
        return text, self.question_keyboard(session, field)

    def render_answered(self, session: WizardSession, field: Field) -> str:
        g = session.guild_id
        field = Field(field)
        return (
            f"{self._question_head(session, field)}\n\n"
            f"✔️ {html.escape(self.t(g, 'wizard.card.answer'))}: "
            f"<code>{html.escape(self.value_text(session, field))}</code>"
        )

    def question_keyboard(self, session: WizardSession, field: Field) -> InlineKeyboardMarkup:
        g = session.guild_id
        key = session.key
        rows: List[List[InlineKeyboardButton]] = []

        enum_cls = CHOICE_FIELDS.get(field)
        if enum_cls is not None:
            current = get_value(field, session.draft)
            buf: List[InlineKeyboardButton] = []
            for option in enum_cls:
                label = self.choice_label(g, field, option)
                if option == current:
                    label = f"✅ {label}"
                buf.append(
                    InlineKeyboardButton(
                        text=label,
                        callback_data=WizardCB.for_key(key, WizardAction.CHOICE, field, option.value),
                    )
                )
                if len(buf) == CHOICES_PER_ROW:
                    rows.append(buf)
                    buf = []
            if buf:
                rows.append(buf)

        next_label = self.t(g, "wizard.nav.next")
        if not is_satisfied(field, session.draft):
            next_label = f"{next_label} 🔒"

        rows.append(
            [
                InlineKeyboardButton(
                    text=f"◀️ {self.t(g, 'wizard.nav.back')}",
                    callback_data=WizardCB.for_key(key, WizardAction.BACK, field),
                ),
                InlineKeyboardButton(
                    text=f"♻️ {self.t(g, 'wizard.nav.reset')}",
                    callback_data=WizardCB.for_key(key, WizardAction.RESET, field),
                ),
                InlineKeyboardButton(
                    text=f"{next_label} ▶️",
                    callback_data=WizardCB.for_key(key, WizardAction.NEXT, field),
                ),
            ]
        )
        return InlineKeyboardMarkup(inline_keyboard=rows)

    # ===== question cards =====

    async def present(self, bot: Bot, session: WizardSession) -> Optional[int]:
        """Sends a new card for the awaited field and remembers its message id."""
        field = session.await_field
        if field is None:
            raise ValueError(f"No question to present in state {session.state!r}")

        text, markup = self.render_question(session, field)
        try:
            sent = await bot.send_message(session.private_chat_id, text, reply_markup=markup)
        except TelegramAPIError as e:
            logger.error("Failed to send question %s for key=%s: %s", field.value, session.key, e)
            return None

        session.msg_ids[field] = sent.message_id
        return sent.message_id

    async def freeze(self, bot: Bot, session: WizardSession, field: Field) -> None:
        """Turns the card of `field` into a read-only transcript entry."""
        msg_id = session.msg_ids.get(Field(field))
        if not msg_id:
            return
        await safe_edit_text(bot, session.private_chat_id, msg_id, self.render_answered(session, field))

    async def strip_controls(self, bot: Bot, session: WizardSession, field: Field) -> None:
        msg_id = session.msg_ids.get(Field(field))
        if not msg_id:
            return
        await safe_strip_markup(bot, session.private_chat_id, msg_id)

    async def strip_live(self, bot: Bot, session: WizardSession, state: Optional[WizardState] = None) -> None:
        """Removes buttons from whatever card is currently accepting input."""
        state = state or session.state
        chat_id = session.private_chat_id
        if isinstance(state, AwaitingKind) and session.kind_msg_id:
            await safe_strip_markup(bot, chat_id, session.kind_msg_id)
        elif isinstance(state, Asking):
            await self.strip_controls(bot, session, state.field)
        elif isinstance(state, Summary) and session.summary_msg_id:
            await safe_strip_markup(bot, chat_id, session.summary_msg_id)
        if session.picker_msg_id:
            await safe_strip_markup(bot, chat_id, session.picker_msg_id)
            session.picker_msg_id = None

    # ===== kind choice =====

    async def present_kind_choice(self, bot: Bot, session: WizardSession) -> int:
        """First DM of a wizard. Errors propagate so the caller can tell the user in the group."""
        g = session.guild_id
        key = session.key
        markup = InlineKeyboardMarkup(
            inline_keyboard=[
                [
                    InlineKeyboardButton(
                        text=self.t(g, "wizard.kind.buy"),
                        callback_data=WizardCB.for_key(key, WizardAction.KIND, value="buy"),
                    ),
                    InlineKeyboardButton(
                        text=self.t(g, "wizard.kind.sell"),
                        callback_data=WizardCB.for_key(key, WizardAction.KIND, value="sell"),
                    ),
                ],
                [
                    InlineKeyboardButton(
                        text=f"✖️ {self.t(g, 'wizard.label.cancel')}",
                        callback_data=WizardCB.for_key(key, WizardAction.CANCEL),
                    )
                ],
            ]
        )
        text = (
            f"<b>{html.escape(self.t(g, 'wizard.startTitle'))}</b>\n"
            f"{html.escape(self.t(g, 'wizard.chooseAction'))}"
        )
        sent = await bot.send_message(session.private_chat_id, text, reply_markup=markup)
        session.kind_msg_id = sent.message_id
        return sent.message_id

    async def close_kind_choice(self, bot: Bot, session: WizardSession) -> None:
        if not session.kind_msg_id or session.kind is None:
            return
        g = session.guild_id
        text = (
            f"<b>{html.escape(self.t(g, 'wizard.startTitle'))}</b>\n"
            f"✔️ {html.escape(self.t(g, f'wizard.kind.{session.kind.value}'))}"
        )
        await safe_edit_text(bot, session.private_chat_id, session.kind_msg_id, text)

    # ===== ambiguous item search =====

    async def present_candidates(
            self,
            bot: Bot,
            session: WizardSession,
            field: Field,
            query: str,
            candidates: List[Candidate],
    ) -> Optional[int]:
        g = session.guild_id
        if session.picker_msg_id:
            await safe_strip_markup(bot, session.private_chat_id, session.picker_msg_id)

        rows = []
        for c in candidates:
            label = c.label if len(c.label) <= LABEL_MAX else c.label[:LABEL_MAX - 1] + "…"
            rows.append(
                [
                    InlineKeyboardButton(
                        text=f"{label} (ID {c.item_id})",
                        callback_data=WizardCB.for_key(session.key, WizardAction.PICK, field, str(c.item_id)),
                    )
                ]
            )
        text = f"🔎 {html.escape(self.t(g, 'wizard.multipleFound', q=query))}"
        try:
            sent = await bot.send_message(
                session.private_chat_id,
                text,
                reply_markup=InlineKeyboardMarkup(inline_keyboard=rows),
            )
        except TelegramAPIError as e:
            logger.error("Failed to send item picker for key=%s: %s", session.key, e)
            return None
        session.picker_msg_id = sent.message_id
        return sent.message_id

    async def close_picker(self, bot: Bot, session: WizardSession, item_id: int) -> None:
        if not session.picker_msg_id:
            return
        text = f"🔎 {html.escape(self.t(session.guild_id, 'wizard.picked', id=item_id))}"
        await safe_edit_text(bot, session.private_chat_id, session.picker_msg_id, text)
        session.picker_msg_id = None

    # ===== summary / result =====

    async def _item_name(self, item_id: Optional[int]) -> str:
        if item_id is None:
            return PLACEHOLDER
        if self.catalog is None:
            return f"Item #{item_id}"
        info = await self.catalog.get_item_info(item_id)
        return info.name

    def describe_quantity(self, guild_id: int, mode: QuantityMode, quantity: Optional[int]) -> str:
        if mode == QuantityMode.UNLIMITED:
            return "∞"
        return f"{quantity} ({self.choice_label(guild_id, Field.QUANTITY_MODE, mode)})"

    async def describe_reward(
            self,
            guild_id: int,
            kind: CompensationKind,
            quantity: Optional[int],
            unit,
            item_id: Optional[int],
    ) -> str:
        unit_label = self.choice_label(guild_id, Field.COMPENSATION_UNIT, unit) if unit else PLACEHOLDER
        if kind == CompensationKind.ITEM:
            name = await self._item_name(item_id)
            return f"{quantity} × {name} (ID {item_id}) {unit_label}"
        currency = self.t(guild_id, "wizard.currencyUnit")
        return f"{quantity} {currency} {unit_label}"

    async def render_summary(self, session: WizardSession) -> Tuple[str, InlineKeyboardMarkup]:
        g = session.guild_id
        d = session.draft
        title = apply_title_prefix(self.t, session.kind, d.title, g) if session.kind else d.title
        item_name = await self._item_name(d.item_id)

        lines = [
            f"🧾 <b>{html.escape(self.t(g, 'wizard.summaryTitle'))}</b>",
            "",
            f"<b>{html.escape(self.t(g, 'wizard.summary.title'))}:</b> {html.escape(title or PLACEHOLDER)}",
            f"<b>{html.escape(self.t(g, 'wizard.summary.item'))}:</b> "
            f"{html.escape(item_name)} (ID {d.item_id})",
            f"<b>{html.escape(self.t(g, 'wizard.summary.qty'))}:</b> "
            f"{html.escape(self.describe_quantity(g, d.quantity_mode, d.quantity))}",
            f"<b>{html.escape(self.t(g, 'wizard.summary.mode'))}:</b> "
            f"{html.escape(self.value_text(session, Field.ASSIGNMENT))}",
            f"<b>{html.escape(self.t(g, 'wizard.summary.scope'))}:</b> "
            f"{html.escape(self.value_text(session, Field.SCOPE))}",
            f"<b>{html.escape(self.t(g, 'wizard.summary.reward'))}:</b> "
            + html.escape(
                await self.describe_reward(
                    g,
                    d.compensation_kind,
                    d.compensation_quantity,
                    d.compensation_unit,
                    d.compensation_item_id,
                )
            ),
        ]

        key = session.key
        markup = InlineKeyboardMarkup(
            inline_keyboard=[
                [
                    InlineKeyboardButton(
                        text=f"✅ {self.t(g, 'wizard.label.confirmSave')}",
                        callback_data=WizardCB.for_key(key, WizardAction.CONFIRM),
                    ),
                    InlineKeyboardButton(
                        text=f"✖️ {self.t(g, 'wizard.label.cancel')}",
                        callback_data=WizardCB.for_key(key, WizardAction.CANCEL),
                    ),
                ]
            ]
        )
        return "\n".join(lines), markup

    async def present_summary(self, bot: Bot, session: WizardSession) -> Optional[int]:
        text, markup = await self.render_summary(session)
        try:
            sent = await bot.send_message(session.private_chat_id, text, reply_markup=markup)
        except TelegramAPIError as e:
            logger.error("Failed to send summary for key=%s: %s", session.key, e)
            return None
        session.summary_msg_id = sent.message_id
        return sent.message_id

    async def show_success(self, bot: Bot, session: WizardSession, order: Order) -> None:
        g = session.guild_id
        lines = [
            f"🎉 <b>{html.escape(self.t(g, f'wizard.success.{order.kind.value}'))}</b>",
            html.escape(self.t(g, "wizard.success.desc")),
            "",
            f"<b>{html.escape(order.title)}</b>",
            f"ID: {order.id}",
        ]
        if order.message_id is None:
            lines.append(html.escape(self.t(g, "wizard.success.notPublished")))
        text = "\n".join(lines)

        if session.summary_msg_id and await safe_edit_text(bot, session.private_chat_id, session.summary_msg_id, text):
            return
        try:
            await bot.send_message(session.private_chat_id, text)
        except TelegramAPIError as e:
            logger.warning("Failed to send success message for key=%s: %s", session.key, e)

    async def notify(self, bot: Bot, session: WizardSession, text: str) -> None:
        try:
            await bot.send_message(session.private_chat_id, f"❗ {html.escape(text)}")
        except TelegramAPIError as e:
            logger.warning("Failed to send notice to key=%s: %s", session.key, e)

    async def show_cancelled(self, bot: Bot, session: WizardSession, state: WizardState) -> None:
        await self.strip_live(bot, session, state)
        await self.notify_plain(bot, session, f"✖️ {self.t(session.guild_id, 'wizard.cancelled')}")

    async def show_expired(self, bot: Bot, session: WizardSession) -> None:
        await self.strip_live(bot, session)
        await self.notify_plain(bot, session, f"⏱️ {self.t(session.guild_id, 'wizard.expired')}")

    async def notify_plain(self, bot: Bot, session: WizardSession, text: str) -> None:
        try:
            await bot.send_message(session.private_chat_id, html.escape(text))
        except TelegramAPIError as e:
            logger.warning("Failed to send message to key=%s: %s", session.key, e)
