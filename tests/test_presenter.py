# tests/test_presenter.py
from blackboard.models import CompensationKind, OrderKind, QuantityMode
from blackboard.sessions import SessionStore
from blackboard.wizard.callbacks import WizardAction, WizardCB
from blackboard.wizard.fields import Field
from blackboard.wizard.machine import Asking

from conftest import GUILD, USER


def new_session(field: Field):
    s = SessionStore().create(GUILD, USER, GUILD, USER, "Ann")
    s.kind = OrderKind.BUY
    s.state = Asking(field)
    return s


def callbacks(msg):
    return [WizardCB.unpack(data) for _, data in msg.buttons]


async def test_choice_card_marks_current_value(bot, presenter):
    s = new_session(Field.QUANTITY_MODE)
    await presenter.present(bot, s)
    msg = bot.last(USER)

    assert s.msg_ids[Field.QUANTITY_MODE] == msg.message_id
    labels = [text for text, _ in msg.buttons]
    assert "✅ Items" in labels
    assert "Stacks" in labels
    actions = [cb.action for cb in callbacks(msg)]
    assert actions[-3:] == [WizardAction.BACK, WizardAction.RESET, WizardAction.NEXT]
    assert all(cb.key == s.key for cb in callbacks(msg))


async def test_next_is_locked_until_answered(bot, presenter):
    s = new_session(Field.ITEM)
    await presenter.present(bot, s)
    assert any(text.startswith("Next 🔒") for text, _ in bot.last(USER).buttons)

    s.draft.item_id = 2770
    _, markup = presenter.render_question(s, Field.ITEM)
    texts = [b.text for row in markup.inline_keyboard for b in row]
    assert "Next ▶️" in texts


async def test_freeze_is_idempotent(bot, presenter):
    s = new_session(Field.TITLE)
    s.draft.title = "Copper <Ore>"
    await presenter.present(bot, s)
    msg = bot.last(USER)

    await presenter.freeze(bot, s, Field.TITLE)
    frozen_text = msg.text
    await presenter.freeze(bot, s, Field.TITLE)

    assert msg.reply_markup is None
    assert msg.text == frozen_text
    assert "Copper &lt;Ore&gt;" in frozen_text
    assert "Answer" in frozen_text


async def test_freeze_of_deleted_message_is_skipped(bot, presenter):
    s = new_session(Field.TITLE)
    await presenter.present(bot, s)
    bot.last(USER).deleted = True
    await presenter.freeze(bot, s, Field.TITLE)


def test_value_texts(presenter):
    s = new_session(Field.QUANTITY)
    s.draft.quantity_mode = QuantityMode.UNLIMITED
    s.draft.quantity = None
    assert presenter.value_text(s, Field.QUANTITY) == "∞"
    assert presenter.value_text(s, Field.ITEM) == "—"
    assert presenter.value_text(s, Field.COMPENSATION_ITEM) == "— (not needed)"

    s.draft.compensation_kind = CompensationKind.ITEM
    s.draft.compensation_item_id = 2589
    assert presenter.value_text(s, Field.COMPENSATION_ITEM) == "ID 2589"
    assert presenter.value_text(s, Field.COMPENSATION_UNIT) == "per item"


def test_live_title_card_shows_prefix(presenter):
    s = new_session(Field.TITLE)
    s.draft.title = "sell: Copper"
    text, _ = presenter.render_question(s, Field.TITLE)
    assert "BUY: Copper" in text


async def test_summary_lists_names(bot, presenter):
    s = new_session(Field.COMPENSATION_UNIT)
    s.draft.title = "Copper"
    s.draft.item_id = 2770
    s.draft.quantity = 20
    s.draft.compensation_quantity = 3
    text, markup = await presenter.render_summary(s)

    assert "BUY: Copper" in text
    assert "Copper Ore (ID 2770)" in text
    assert "20 (Items)" in text
    assert "3 gold per item" in text
    actions = [WizardCB.unpack(b.callback_data).action for row in markup.inline_keyboard for b in row]
    assert actions == [WizardAction.CONFIRM, WizardAction.CANCEL]
