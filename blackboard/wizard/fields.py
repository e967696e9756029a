# blackboard/wizard/fields.py
"""
Static question order of the order wizard and everything that depends only on
the draft: relevance (conditional skipping), validation, reset, navigation
and answer parsing.

Relevance is a predicate over the whole draft, so branching such as "skip
quantity when unlimited" needs no explicit edges between fields.
"""
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Type

from ..models import (
    Assignment,
    CompensationKind,
    CompensationUnit,
    Draft,
    QuantityMode,
    Scope,
)
from ..utils.numbers import parse_number

MAX_NUMBER = 1_000_000_000


class Field(str, Enum):
    TITLE = "title"
    ITEM = "item"
    QUANTITY_MODE = "qmode"
    QUANTITY = "quantity"
    ASSIGNMENT = "assign"
    SCOPE = "scope"
    COMPENSATION_KIND = "ckind"
    COMPENSATION_ITEM = "citem"
    COMPENSATION_QUANTITY = "cqty"
    COMPENSATION_UNIT = "cunit"


FIELD_ORDER: Tuple[Field, ...] = (
    Field.TITLE,
    Field.ITEM,
    Field.QUANTITY_MODE,
    Field.QUANTITY,
    Field.ASSIGNMENT,
    Field.SCOPE,
    Field.COMPENSATION_KIND,
    Field.COMPENSATION_ITEM,
    Field.COMPENSATION_QUANTITY,
    Field.COMPENSATION_UNIT,
)

# draft attribute holding each field's value
ATTRS: Dict[Field, str] = {
    Field.TITLE: "title",
    Field.ITEM: "item_id",
    Field.QUANTITY_MODE: "quantity_mode",
    Field.QUANTITY: "quantity",
    Field.ASSIGNMENT: "assignment",
    Field.SCOPE: "scope",
    Field.COMPENSATION_KIND: "compensation_kind",
    Field.COMPENSATION_ITEM: "compensation_item_id",
    Field.COMPENSATION_QUANTITY: "compensation_quantity",
    Field.COMPENSATION_UNIT: "compensation_unit",
}

CHOICE_FIELDS: Dict[Field, Type[Enum]] = {
    Field.QUANTITY_MODE: QuantityMode,
    Field.ASSIGNMENT: Assignment,
    Field.SCOPE: Scope,
    Field.COMPENSATION_KIND: CompensationKind,
    Field.COMPENSATION_UNIT: CompensationUnit,
}

ITEM_FIELDS = (Field.ITEM, Field.COMPENSATION_ITEM)
NUMBER_FIELDS = {Field.QUANTITY: 1, Field.COMPENSATION_QUANTITY: 0}  # field -> minimum

# accepted spellings when a choice is typed instead of clicked
VOCABULARY: Dict[Field, Dict[str, Enum]] = {
    Field.QUANTITY_MODE: {
        "unit": QuantityMode.UNIT,
        "units": QuantityMode.UNIT,
        "items": QuantityMode.UNIT,
        "bundle": QuantityMode.BUNDLE,
        "bundles": QuantityMode.BUNDLE,
        "stack": QuantityMode.BUNDLE,
        "stacks": QuantityMode.BUNDLE,
        "unlimited": QuantityMode.UNLIMITED,
        "infinite": QuantityMode.UNLIMITED,
        "∞": QuantityMode.UNLIMITED,
    },
    Field.ASSIGNMENT: {
        "single": Assignment.SINGLE,
        "multi": Assignment.MULTI,
    },
    Field.SCOPE: {
        "personal": Scope.PERSONAL,
        "community": Scope.COMMUNITY,
        "guild": Scope.COMMUNITY,
    },
    Field.COMPENSATION_KIND: {
        "currency": CompensationKind.CURRENCY,
        "gold": CompensationKind.CURRENCY,
        "item": CompensationKind.ITEM,
    },
    Field.COMPENSATION_UNIT: {
        "per-unit": CompensationUnit.PER_UNIT,
        "per_unit": CompensationUnit.PER_UNIT,
        "per_item": CompensationUnit.PER_UNIT,
        "per-item": CompensationUnit.PER_UNIT,
        "per-bundle": CompensationUnit.PER_BUNDLE,
        "per_bundle": CompensationUnit.PER_BUNDLE,
        "per_stack": CompensationUnit.PER_BUNDLE,
        "per-stack": CompensationUnit.PER_BUNDLE,
    },
}


class AnswerError(ValueError):
    """Rejected answer; `key` is the i18n key of the re-prompt notice."""

    def __init__(self, key: str, **variables: Any):
        super().__init__(key)
        self.key = key
        self.variables = variables


def _index(field: Field) -> int:
    return FIELD_ORDER.index(Field(field))


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def get_value(field: Field, draft: Draft) -> Any:
    return getattr(draft, ATTRS[Field(field)])


def is_relevant(field: Field, draft: Draft) -> bool:
    field = Field(field)
    if field == Field.QUANTITY:
        return draft.quantity_mode != QuantityMode.UNLIMITED
    if field == Field.COMPENSATION_ITEM:
        return draft.compensation_kind == CompensationKind.ITEM
    return True


def next_relevant_field(field: Field, draft: Draft) -> Optional[Field]:
    """First strictly later relevant field, None when past the end."""
    for candidate in FIELD_ORDER[_index(field) + 1:]:
        if is_relevant(candidate, draft):
            return candidate
    return None


def previous_relevant_field(field: Field, draft: Draft) -> Field:
    """Symmetric backward scan, capped at the first field."""
    for candidate in reversed(FIELD_ORDER[:_index(field)]):
        if is_relevant(candidate, draft):
            return candidate
    return FIELD_ORDER[0]


def is_satisfied(field: Field, draft: Draft) -> bool:
    field = Field(field)
    value = get_value(field, draft)

    if field == Field.TITLE:
        return bool((value or "").strip())
    if field in ITEM_FIELDS:
        if not is_relevant(field, draft):
            return True
        return _is_int(value) and value > 0
    if field in NUMBER_FIELDS:
        if not is_relevant(field, draft):
            return True
        return _is_int(value) and NUMBER_FIELDS[field] <= value <= MAX_NUMBER
    if field in CHOICE_FIELDS:
        return isinstance(value, CHOICE_FIELDS[field])
    raise ValueError(f"Unknown field: {field!r}")


def is_complete(draft: Draft) -> bool:
    return all(is_satisfied(f, draft) for f in FIELD_ORDER if is_relevant(f, draft))


def reset_field(field: Field, draft: Draft) -> None:
    field = Field(field)
    if field == Field.TITLE:
        draft.title = ""
        return

    setattr(draft, ATTRS[field], None)
    if field == Field.QUANTITY_MODE:
        draft.quantity = None
    elif field == Field.COMPENSATION_KIND:
        draft.compensation_item_id = None
        draft.compensation_quantity = None
        draft.compensation_unit = None


def apply_answer(field: Field, draft: Draft, value: Any) -> None:
    """Writes an already parsed value and clears values it invalidates."""
    field = Field(field)
    setattr(draft, ATTRS[field], value)

    if field == Field.QUANTITY_MODE and value == QuantityMode.UNLIMITED:
        draft.quantity = None
    elif field == Field.COMPENSATION_KIND and value != CompensationKind.ITEM:
        draft.compensation_item_id = None


def coerce_choice(field: Field, raw: Any) -> Enum:
    """Choice value from a button (enum value string) or typed text."""
    field = Field(field)
    enum_cls = CHOICE_FIELDS.get(field)
    if enum_cls is None:
        raise ValueError(f"{field.value} has no choice set")
    if isinstance(raw, enum_cls):
        return raw

    text = str(raw or "").strip().lower()
    try:
        return enum_cls(text)
    except ValueError:
        pass
    value = VOCABULARY[field].get(text)
    if value is None:
        raise AnswerError("wizard.error.choice", options=" / ".join(e.value for e in enum_cls))
    return value


def parse_answer(field: Field, text: str) -> Any:
    """
    Parses a typed answer for every field except the item fields, which go
    through the item resolver.
    """
    field = Field(field)
    content = (text or "").strip()

    if field == Field.TITLE:
        if not content:
            raise AnswerError("wizard.error.title")
        return content

    if field in NUMBER_FIELDS:
        minimum = NUMBER_FIELDS[field]
        n = parse_number(content)
        if n is None or n < minimum or n > MAX_NUMBER:
            raise AnswerError("wizard.error.number", min=minimum)
        return n

    if field in CHOICE_FIELDS:
        return coerce_choice(field, content)

    raise ValueError(f"{field.value} answers must be resolved, not parsed")
