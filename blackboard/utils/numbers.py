# blackboard/utils/numbers.py
from __future__ import annotations

import math
import re
from typing import Optional

_NUMBER_RE = re.compile(r"-?\d+(?:\.\d+)?")
_ID_RE = re.compile(r"^\d+$")


def is_numeric(text: str | None) -> bool:
    """Well-formed non-negative integer, surrounding whitespace ignored."""
    if text is None:
        return False
    return bool(_ID_RE.match(str(text).strip()))


def parse_number(text: str | None) -> Optional[int]:
    """
    First signed integer/decimal token in the text, truncated toward zero.
    '20 stacks' -> 20, 'about 12,7g' -> 12, '-3.9' -> -3, 'abc' -> None
    """
    if text is None:
        return None
    m = _NUMBER_RE.search(str(text).replace(",", "."))
    if not m:
        return None
    value = float(m.group(0))
    if not math.isfinite(value):
        return None
    return int(value)
