# blackboard/models.py
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class OrderKind(str, Enum):
    BUY = "buy"
    SELL = "sell"


class QuantityMode(str, Enum):
    UNIT = "unit"
    BUNDLE = "bundle"
    UNLIMITED = "unlimited"


class Assignment(str, Enum):
    SINGLE = "single"
    MULTI = "multi"


class Scope(str, Enum):
    PERSONAL = "personal"
    COMMUNITY = "community"


class CompensationKind(str, Enum):
    CURRENCY = "currency"
    ITEM = "item"


class CompensationUnit(str, Enum):
    PER_UNIT = "per-unit"
    PER_BUNDLE = "per-bundle"


@dataclass
class Draft:
    owner_id: int
    owner_name: str = ""
    title: str = ""
    item_id: Optional[int] = None
    quantity_mode: Optional[QuantityMode] = QuantityMode.UNIT
    quantity: Optional[int] = 1
    assignment: Optional[Assignment] = Assignment.MULTI
    scope: Optional[Scope] = Scope.PERSONAL
    compensation_kind: Optional[CompensationKind] = CompensationKind.CURRENCY
    compensation_item_id: Optional[int] = None
    compensation_quantity: Optional[int] = 0
    compensation_unit: Optional[CompensationUnit] = CompensationUnit.PER_UNIT
    claimants: List[int] = field(default_factory=list)

    def copy(self) -> "Draft":
        return replace(self, claimants=list(self.claimants))


class Order(BaseModel):
    """
    Committed order as stored in data/orders-<guild_id>.json.
    Unknown keys from older files are kept so a rewrite never drops them.
    """
    model_config = ConfigDict(extra="allow", use_enum_values=False)

    id: int
    kind: OrderKind = OrderKind.BUY
    title: str = ""
    item_id: int
    quantity_mode: QuantityMode = QuantityMode.UNIT
    quantity: Optional[int] = None
    assignment: Assignment = Assignment.MULTI
    scope: Scope = Scope.PERSONAL
    compensation_kind: CompensationKind = CompensationKind.CURRENCY
    compensation_item_id: Optional[int] = None
    compensation_quantity: int = 0
    compensation_unit: CompensationUnit = CompensationUnit.PER_UNIT
    owner_id: int
    owner_name: str = ""
    claimants: List[int] = []
    claimant_names: Dict[int, str] = {}
    chat_id: Optional[int] = None
    message_id: Optional[int] = None
    post_has_image: bool = False
    closed: bool = False
    created_at: datetime = datetime.fromtimestamp(0, tz=timezone.utc)

    @classmethod
    def from_draft(cls, draft: Draft, order_id: int, kind: OrderKind, title: str) -> "Order":
        unlimited = draft.quantity_mode == QuantityMode.UNLIMITED
        item_reward = draft.compensation_kind == CompensationKind.ITEM
        return cls(
            id=order_id,
            kind=kind,
            title=title,
            item_id=draft.item_id,
            quantity_mode=draft.quantity_mode,
            quantity=None if unlimited else draft.quantity,
            assignment=draft.assignment,
            scope=draft.scope,
            compensation_kind=draft.compensation_kind,
            compensation_item_id=draft.compensation_item_id if item_reward else None,
            compensation_quantity=draft.compensation_quantity or 0,
            compensation_unit=draft.compensation_unit,
            owner_id=draft.owner_id,
            owner_name=draft.owner_name,
            claimants=list(draft.claimants),
            created_at=datetime.now(timezone.utc),
        )
