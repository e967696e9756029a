# blackboard/wizard/machine.py
"""
Wizard state machine as data.

`transition` is pure: it never talks to Telegram, the catalog or storage. It
returns the next state, a new draft, and the effects the engine has to carry
out (which card to freeze, whether to re-present, which notice to show).
I/O-dependent facts, such as moderator capability, arrive inside the event.
"""
from dataclasses import dataclass
from typing import Any, Optional, Union

from ..models import Draft, OrderKind, Scope
from .fields import (
    Field,
    apply_answer,
    is_satisfied,
    next_relevant_field,
    previous_relevant_field,
    reset_field,
)


# ===== States =====

@dataclass(frozen=True)
class AwaitingKind:
    pass


@dataclass(frozen=True)
class Asking:
    field: Field


@dataclass(frozen=True)
class Summary:
    pass


@dataclass(frozen=True)
class Done:
    pass


@dataclass(frozen=True)
class Cancelled:
    pass


WizardState = Union[AwaitingKind, Asking, Summary, Done, Cancelled]
TERMINAL_STATES = (Done, Cancelled)


# ===== Events =====

@dataclass(frozen=True)
class KindChosen:
    kind: OrderKind


@dataclass(frozen=True)
class Answered:
    field: Field
    value: Any
    is_moderator: bool = False


@dataclass(frozen=True)
class NextPressed:
    field: Optional[Field] = None


@dataclass(frozen=True)
class BackPressed:
    field: Optional[Field] = None


@dataclass(frozen=True)
class ResetPressed:
    field: Optional[Field] = None


@dataclass(frozen=True)
class Confirmed:
    pass


@dataclass(frozen=True)
class CancelPressed:
    pass


WizardEvent = Union[
    KindChosen, Answered, NextPressed, BackPressed, ResetPressed, Confirmed, CancelPressed
]


@dataclass(frozen=True)
class Step:
    state: WizardState
    draft: Draft
    kind: Optional[OrderKind] = None
    freeze: Optional[Field] = None      # freeze this card as answered
    strip: Optional[Field] = None       # only remove this card's controls
    present: bool = False               # send the card of state.field / the summary
    rejected: Optional[str] = None      # i18n key of a transient notice

    @property
    def changed(self) -> bool:
        return self.rejected is None


def _reject(state: WizardState, draft: Draft, key: str, **kw) -> Step:
    return Step(state=state, draft=draft, rejected=key, **kw)


def _advance(field: Field, draft: Draft) -> Step:
    nxt = next_relevant_field(field, draft)
    state: WizardState = Summary() if nxt is None else Asking(nxt)
    return Step(state=state, draft=draft, freeze=field, present=True)


def _stale(state: Asking, field: Optional[Field]) -> bool:
    return field is not None and Field(field) != state.field


def transition(state: WizardState, event: WizardEvent, draft: Draft) -> Step:
    """
    Single entry point of the wizard logic. The input draft is never mutated;
    the returned Step carries a (possibly updated) copy.
    """
    draft = draft.copy()

    if isinstance(state, TERMINAL_STATES):
        return _reject(state, draft, "wizard.expired")

    if isinstance(event, CancelPressed):
        return Step(state=Cancelled(), draft=draft)

    if isinstance(state, AwaitingKind):
        if isinstance(event, KindChosen):
            return Step(state=Asking(Field.TITLE), draft=draft, kind=OrderKind(event.kind), present=True)
        return _reject(state, draft, "wizard.chooseKindFirst")

    if isinstance(state, Summary):
        if isinstance(event, Confirmed):
            return Step(state=Done(), draft=draft)
        return _reject(state, draft, "wizard.staleQuestion")

    if not isinstance(state, Asking):
        raise ValueError(f"Unknown wizard state: {state!r}")

    field = state.field

    if isinstance(event, Answered):
        if _stale(state, event.field):
            return _reject(state, draft, "wizard.staleQuestion")
        if field == Field.SCOPE and event.value == Scope.COMMUNITY and not event.is_moderator:
            # keep the previous scope and ask again on a fresh card
            return _reject(state, draft, "wizard.error.scopeModeratorsOnly", strip=field, present=True)
        apply_answer(field, draft, event.value)
        if not is_satisfied(field, draft):
            return _reject(state, draft, "wizard.needValue")
        return _advance(field, draft)

    if isinstance(event, NextPressed):
        if _stale(state, event.field):
            return _reject(state, draft, "wizard.staleQuestion")
        if not is_satisfied(field, draft):
            return _reject(state, draft, "wizard.needValue")
        return _advance(field, draft)

    if isinstance(event, BackPressed):
        if _stale(state, event.field):
            return _reject(state, draft, "wizard.staleQuestion")
        prev = previous_relevant_field(field, draft)
        return Step(state=Asking(prev), draft=draft, freeze=field, present=True)

    if isinstance(event, ResetPressed):
        if _stale(state, event.field):
            return _reject(state, draft, "wizard.staleQuestion")
        reset_field(field, draft)
        return Step(state=state, draft=draft, strip=field, present=True)

    if isinstance(event, (KindChosen, Confirmed)):
        return _reject(state, draft, "wizard.staleQuestion")

    raise ValueError(f"Unknown wizard event: {event!r}")
