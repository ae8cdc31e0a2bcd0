"""
Sheet/ream conversion and money helpers.

Stock is always stored in sheets. Reams are a display unit of
`sheets_per_ream` sheets (500 unless the item says otherwise).
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Union

DEFAULT_SHEETS_PER_REAM = 500

MONEY = Decimal("0.01")
SHEET_COST = Decimal("0.0001")

Number = Union[int, float, str, Decimal]


# =============================================================================
# SHEETS <-> REAMS
# =============================================================================

def _safe_per_ream(sheets_per_ream) -> int:
    if not sheets_per_ream or sheets_per_ream <= 0:
        return DEFAULT_SHEETS_PER_REAM
    return int(sheets_per_ream)


def to_sheets(reams: int = 0, sheets: int = 0, sheets_per_ream: int = DEFAULT_SHEETS_PER_REAM) -> int:
    """Convert mixed units (reams + loose sheets) to total sheets"""
    return reams * sheets_per_ream + sheets


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def to_display(total_sheets: int, sheets_per_ream: int = DEFAULT_SHEETS_PER_REAM) -> dict:
    """
    Split a sheet count into reams and loose sheets for display.

    >>> to_display(1050)["display"]
    '2 reams, 50 sheets'
    >>> to_display(1050)["display_short"]
    '2r 50s'
    """
    per_ream = _safe_per_ream(sheets_per_ream)
    reams, sheets = divmod(int(total_sheets), per_ream)

    if reams > 0:
        display = _plural(reams, "ream")
        display_short = f"{reams}r"
        if sheets > 0:
            display += f", {_plural(sheets, 'sheet')}"
            display_short += f" {sheets}s"
    else:
        display = _plural(sheets, "sheet")
        display_short = f"{sheets}s"

    return {
        "total_sheets": int(total_sheets),
        "reams": reams,
        "sheets": sheets,
        "display": display,
        "display_short": display_short,
    }


def is_ream_unit(unit_of_measure: str) -> bool:
    return "ream" in (unit_of_measure or "").lower()


def quantity_in_sheets(quantity: Number, unit_of_measure: str, sheets_per_unit: int = DEFAULT_SHEETS_PER_REAM) -> int:
    """Quantity entered in an item's unit of measure, converted to sheets"""
    if is_ream_unit(unit_of_measure):
        sheets = Decimal(str(quantity)) * _safe_per_ream(sheets_per_unit)
        return int(sheets.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    return int(Decimal(str(quantity)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def format_stock(item) -> str:
    """Human stock string for an inventory item"""
    if item.category == "paper" or is_ream_unit(item.unit_of_measure):
        return to_display(item.current_stock_sheets, item.sheets_per_unit)["display"]
    return f"{item.current_stock_sheets} {item.unit_of_measure}"


# =============================================================================
# MONEY
# =============================================================================

def quantize_money(value: Number) -> Decimal:
    return Decimal(str(value)).quantize(MONEY, rounding=ROUND_HALF_UP)


def cost_per_sheet(unit_cost: Number, sheets_per_unit: int = DEFAULT_SHEETS_PER_REAM) -> Decimal:
    per_unit = _safe_per_ream(sheets_per_unit)
    return (Decimal(str(unit_cost)) / Decimal(per_unit)).quantize(SHEET_COST, rounding=ROUND_HALF_UP)


def calculate_cost(sheets_used: int, cost_per_ream: Number, sheets_per_ream: int = DEFAULT_SHEETS_PER_REAM) -> Decimal:
    """Cost of `sheets_used` sheets bought at `cost_per_ream`"""
    per_ream = _safe_per_ream(sheets_per_ream)
    return quantize_money(Decimal(sheets_used) * Decimal(str(cost_per_ream)) / Decimal(per_ream))


def line_cost(quantity_sheets: int, unit_cost: Number) -> Decimal:
    return quantize_money(Decimal(quantity_sheets) * Decimal(str(unit_cost)))
