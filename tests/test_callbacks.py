# tests/test_callbacks.py
from blackboard.sessions import SessionKey
from blackboard.wizard.callbacks import OrderAction, OrderCB, WizardAction, WizardCB
from blackboard.wizard.fields import Field


def test_wizard_callback_carries_session_key():
    packed = WizardCB.for_key(SessionKey(-1001234567890, 987654321), WizardAction.CHOICE, Field.COMPENSATION_UNIT, "per-bundle")
    assert len(packed.encode()) <= 64

    cb = WizardCB.unpack(packed)
    assert cb.key == SessionKey(-1001234567890, 987654321)
    assert cb.action == WizardAction.CHOICE
    assert cb.field == Field.COMPENSATION_UNIT
    assert cb.value == "per-bundle"


def test_wizard_callback_without_field():
    cb = WizardCB.unpack(WizardCB.for_key(SessionKey(1, 2), WizardAction.CONFIRM))
    assert cb.field is None
    assert cb.value is None


def test_order_callback_roundtrip():
    cb = OrderCB.unpack(OrderCB(action=OrderAction.UNCLAIM, order_id=17).pack())
    assert cb.action == OrderAction.UNCLAIM
    assert cb.order_id == 17
