"""Pay-item number and unit normalisation for DPWH item matching.

Rate templates and BOQ lines come from different sources and disagree on
spacing around the parenthesised sub-item ("900 (1) c" vs "900(1)c").
Matching is always done on the canonical form returned by
``normalize_pay_item``.
"""
from __future__ import annotations

import re
from typing import Optional

_WS = re.compile(r"\s+")
_OPEN_PAREN = re.compile(r"\s*\(\s*")
_BEFORE_CLOSE = re.compile(r"\s+([).])")
_AFTER_CLOSE = re.compile(r"\)\s+(?=[A-Z0-9])")
_BASE_NUMBER = re.compile(r"^(\d+)")
_VALID_FORMAT = re.compile(r"^\d+\(\d+\)([A-Z]\d*)?$")

_UNIT_ALIASES: dict[str, str] = {
    "cu.m": "Cubic Meter",
    "cu.m.": "Cubic Meter",
    "m3": "Cubic Meter",
    "cubic meter": "Cubic Meter",
    "cubic meters": "Cubic Meter",
    "sq.m": "Square Meter",
    "sq.m.": "Square Meter",
    "m2": "Square Meter",
    "square meter": "Square Meter",
    "square meters": "Square Meter",
    "lin.m": "Linear Meter",
    "l.m": "Linear Meter",
    "linear meter": "Linear Meter",
    "linear meters": "Linear Meter",
    "kg": "Kilogram",
    "kilogram": "Kilogram",
    "kilograms": "Kilogram",
    "l.s.": "Lump Sum",
    "ls": "Lump Sum",
    "lump sum": "Lump Sum",
    "each": "Each",
    "ea": "Each",
    "pc": "Each",
    "pcs": "Each",
    "piece": "Each",
}

# (lower bound inclusive, upper bound exclusive, trade)
_TRADE_RANGES: tuple[tuple[int, int, str], ...] = (
    (800, 820, "Earthwork"),
    (900, 902, "Concrete"),
    (902, 903, "Rebar"),
    (903, 910, "Formwork"),
    (1000, 1100, "Finishes"),
    (1100, 1200, "Roofing"),
    (1200, 1300, "Plumbing"),
    (1300, 1400, "Electrical"),
    (1500, 1600, "Marine Works"),
)


def normalize_pay_item(value: Optional[str]) -> str:
    """Canonical, idempotent form of a pay-item number.

    Upper-cases, collapses whitespace and removes the spacing around the
    sub-item parentheses, so ``"900 (1) c"``, ``"900(1) c"`` and
    ``"900 (1)c"`` all become ``"900(1)C"``.
    """
    if not value:
        return ""
    s = _WS.sub(" ", value.strip().upper())
    s = _OPEN_PAREN.sub("(", s)
    s = _BEFORE_CLOSE.sub(r"\1", s)
    s = _AFTER_CLOSE.sub(")", s)
    return s


def pay_items_match(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_pay_item(a) == normalize_pay_item(b)


def normalize_unit(unit: Optional[str]) -> str:
    if not unit:
        return ""
    return _UNIT_ALIASES.get(unit.strip().lower(), unit.strip())


def base_item_number(value: Optional[str]) -> str:
    """Leading item number without sub-classification ("900 (1) c" -> "900")."""
    match = _BASE_NUMBER.match((value or "").strip())
    return match.group(1) if match else ""


def trade_for_pay_item(value: Optional[str]) -> str:
    base = base_item_number(value)
    if not base:
        return "Other"
    number = int(base)
    for low, high, trade in _TRADE_RANGES:
        if low <= number < high:
            return trade
    return "Other"


def is_valid_pay_item(value: Optional[str]) -> bool:
    return bool(_VALID_FORMAT.match(normalize_pay_item(value)))
