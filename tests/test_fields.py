# tests/test_fields.py
import pytest

from blackboard.models import (
    Assignment,
    CompensationKind,
    CompensationUnit,
    Draft,
    QuantityMode,
    Scope,
)
from blackboard.wizard.fields import (
    FIELD_ORDER,
    AnswerError,
    Field,
    apply_answer,
    coerce_choice,
    is_complete,
    is_relevant,
    is_satisfied,
    next_relevant_field,
    parse_answer,
    previous_relevant_field,
    reset_field,
)


def complete_draft(**overrides) -> Draft:
    d = Draft(owner_id=1, title="Copper", item_id=2770)
    for k, v in overrides.items():
        setattr(d, k, v)
    return d


def test_field_order_starts_with_title_and_ends_with_unit():
    assert FIELD_ORDER[0] == Field.TITLE
    assert FIELD_ORDER[-1] == Field.COMPENSATION_UNIT
    assert len(FIELD_ORDER) == 10


def test_quantity_skipped_when_unlimited():
    d = complete_draft(quantity_mode=QuantityMode.UNLIMITED)
    assert not is_relevant(Field.QUANTITY, d)
    assert next_relevant_field(Field.QUANTITY_MODE, d) == Field.ASSIGNMENT
    assert previous_relevant_field(Field.ASSIGNMENT, d) == Field.QUANTITY_MODE


def test_compensation_item_only_relevant_for_item_rewards():
    d = complete_draft()
    assert next_relevant_field(Field.COMPENSATION_KIND, d) == Field.COMPENSATION_QUANTITY
    d.compensation_kind = CompensationKind.ITEM
    assert next_relevant_field(Field.COMPENSATION_KIND, d) == Field.COMPENSATION_ITEM


def test_navigation_bounds():
    d = complete_draft()
    assert next_relevant_field(Field.COMPENSATION_UNIT, d) is None
    assert previous_relevant_field(Field.TITLE, d) == Field.TITLE


NAVIGATION_DRAFTS = {
    "unit-currency": dict(quantity_mode=QuantityMode.UNIT, compensation_kind=CompensationKind.CURRENCY),
    "unit-item": dict(quantity_mode=QuantityMode.UNIT, compensation_kind=CompensationKind.ITEM),
    "unlimited-currency": dict(quantity_mode=QuantityMode.UNLIMITED, compensation_kind=CompensationKind.CURRENCY),
    "unlimited-item": dict(quantity_mode=QuantityMode.UNLIMITED, compensation_kind=CompensationKind.ITEM),
    "reset-modes": dict(quantity_mode=None, compensation_kind=None),
}


@pytest.mark.parametrize("shape", sorted(NAVIGATION_DRAFTS))
@pytest.mark.parametrize("field", FIELD_ORDER)
def test_back_after_next_never_moves_forward(field, shape):
    d = complete_draft(**NAVIGATION_DRAFTS[shape])
    forward = next_relevant_field(field, d)
    if forward is None:
        return
    back = previous_relevant_field(forward, d)
    assert FIELD_ORDER.index(back) <= FIELD_ORDER.index(field)
    assert is_relevant(back, d)


def test_irrelevant_fields_are_satisfied():
    d = complete_draft(quantity_mode=QuantityMode.UNLIMITED, quantity=None)
    assert is_satisfied(Field.QUANTITY, d)
    assert is_satisfied(Field.COMPENSATION_ITEM, d)


def test_defaults_plus_title_and_item_are_complete():
    assert is_complete(complete_draft())
    assert not is_complete(Draft(owner_id=1))


def test_numbers_reject_bool_and_out_of_range():
    d = complete_draft(quantity=True)
    assert not is_satisfied(Field.QUANTITY, d)
    d.quantity = 0
    assert not is_satisfied(Field.QUANTITY, d)
    d.compensation_quantity = 0
    assert is_satisfied(Field.COMPENSATION_QUANTITY, d)


def test_reset_quantity_mode_clears_quantity():
    d = complete_draft(quantity=20)
    reset_field(Field.QUANTITY_MODE, d)
    assert d.quantity_mode is None
    assert d.quantity is None


def test_reset_compensation_kind_clears_dependents():
    d = complete_draft(
        compensation_kind=CompensationKind.ITEM,
        compensation_item_id=2589,
        compensation_quantity=3,
    )
    reset_field(Field.COMPENSATION_KIND, d)
    assert d.compensation_kind is None
    assert d.compensation_item_id is None
    assert d.compensation_quantity is None
    assert d.compensation_unit is None


def test_reset_title_keeps_other_values():
    d = complete_draft()
    reset_field(Field.TITLE, d)
    assert d.title == ""
    assert d.item_id == 2770


def test_apply_unlimited_clears_quantity():
    d = complete_draft(quantity=5)
    apply_answer(Field.QUANTITY_MODE, d, QuantityMode.UNLIMITED)
    assert d.quantity is None


def test_apply_currency_clears_compensation_item():
    d = complete_draft(compensation_kind=CompensationKind.ITEM, compensation_item_id=2589)
    apply_answer(Field.COMPENSATION_KIND, d, CompensationKind.CURRENCY)
    assert d.compensation_item_id is None


@pytest.mark.parametrize(
    "field, raw, expected",
    [
        (Field.QUANTITY_MODE, "Stacks", QuantityMode.BUNDLE),
        (Field.QUANTITY_MODE, "∞", QuantityMode.UNLIMITED),
        (Field.ASSIGNMENT, "single", Assignment.SINGLE),
        (Field.SCOPE, "guild", Scope.COMMUNITY),
        (Field.COMPENSATION_KIND, "gold", CompensationKind.CURRENCY),
        (Field.COMPENSATION_UNIT, "per_stack", CompensationUnit.PER_BUNDLE),
        (Field.COMPENSATION_UNIT, "per-unit", CompensationUnit.PER_UNIT),
    ],
)
def test_coerce_choice_accepts_aliases(field, raw, expected):
    assert coerce_choice(field, raw) == expected


def test_coerce_choice_rejects_unknown():
    with pytest.raises(AnswerError) as exc:
        coerce_choice(Field.ASSIGNMENT, "everyone")
    assert exc.value.key == "wizard.error.choice"
    assert "single" in exc.value.variables["options"]


def test_parse_title_and_numbers():
    assert parse_answer(Field.TITLE, "  Copper Ore  ") == "Copper Ore"
    assert parse_answer(Field.QUANTITY, "about 20 pieces") == 20
    assert parse_answer(Field.COMPENSATION_QUANTITY, "2,75") == 2
    assert parse_answer(Field.COMPENSATION_QUANTITY, "0") == 0


def test_parse_rejects_empty_title_and_bad_numbers():
    with pytest.raises(AnswerError) as exc:
        parse_answer(Field.TITLE, "   ")
    assert exc.value.key == "wizard.error.title"

    with pytest.raises(AnswerError) as exc:
        parse_answer(Field.QUANTITY, "0")
    assert exc.value.variables == {"min": 1}

    with pytest.raises(AnswerError):
        parse_answer(Field.QUANTITY, "lots")
    with pytest.raises(AnswerError):
        parse_answer(Field.COMPENSATION_QUANTITY, "-3")


def test_item_fields_are_not_parsed():
    with pytest.raises(ValueError):
        parse_answer(Field.ITEM, "2770")
