"""
Stateless status classification for stock levels and job payments.
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from ..models import PaymentStatus
from .units import to_display

CRITICAL = "CRITICAL"
LOW = "LOW"
HEALTHY = "HEALTHY"

LOW_STOCK_FACTOR = Decimal("1.5")

_SEVERITY = {HEALTHY: 0, LOW: 1, CRITICAL: 2}
_PRIORITY = {CRITICAL: "high", LOW: "medium", HEALTHY: "low"}


def check_stock_status(current_sheets: int, threshold_sheets: int, sheets_per_ream: int = 500) -> dict:
    """
    Classify a stock level against its reorder threshold.

    CRITICAL when current <= threshold, LOW up to 1.5x threshold, else
    HEALTHY. With a threshold of 0 the percentage is reported as 0.
    """
    current = int(current_sheets or 0)
    threshold = int(threshold_sheets or 0)

    if current <= threshold:
        status = CRITICAL
    elif current <= threshold * LOW_STOCK_FACTOR:
        status = LOW
    else:
        status = HEALTHY

    if threshold > 0:
        percentage = int((Decimal(current) * 100 / Decimal(threshold)).to_integral_value(rounding=ROUND_HALF_UP))
    else:
        percentage = 0

    current_display = to_display(current, sheets_per_ream)
    return {
        "status": status,
        "priority": _PRIORITY[status],
        "percentage": percentage,
        "current_sheets": current,
        "threshold_sheets": threshold,
        "is_low": current <= threshold,
        "needs_reorder": current <= threshold,
        "display": f"{current_display['display']} ({percentage}% of threshold)",
        "current_display": current_display,
        "threshold_display": to_display(threshold, sheets_per_ream),
    }


def payment_status(total_cost, amount_paid) -> PaymentStatus:
    total = Decimal(str(total_cost or 0))
    paid = Decimal(str(amount_paid or 0))
    if total - paid <= 0:
        return PaymentStatus.FULLY_PAID
    if paid > 0:
        return PaymentStatus.PARTIALLY_PAID
    return PaymentStatus.PENDING


def is_worse(before: str, after: str) -> bool:
    return _SEVERITY[after] > _SEVERITY[before]


def stock_alert(item, stock_before: int, shortage_sheets: int = 0) -> Optional[dict]:
    """
    Notification payload for a stock change on `item`, or None.

    A shortage always alerts at high priority. Otherwise an alert is raised
    only when the status moves to a worse band.
    """
    per_ream = item.sheets_per_unit
    after = check_stock_status(item.current_stock_sheets, item.threshold_sheets, per_ream)

    if shortage_sheets > 0:
        short = to_display(shortage_sheets, per_ream)["display"]
        return {
            "title": "Stock Shortage",
            "message": (
                f"{item.material_name} ran out: {short} could not be taken from stock. "
                f"Remaining: {after['current_display']['display']}."
            ),
            "type": "low_stock",
            "related_entity_id": item.id,
            "priority": "high",
        }

    before = check_stock_status(stock_before, item.threshold_sheets, per_ream)
    if after["status"] == HEALTHY or not is_worse(before["status"], after["status"]):
        return None

    title = "Critical Stock Alert" if after["status"] == CRITICAL else "Low Stock Alert"
    return {
        "title": title,
        "message": (
            f"{item.material_name} is running low. "
            f"Current: {after['current_display']['display']}, "
            f"Threshold: {after['threshold_display']['display']}"
        ),
        "type": "low_stock",
        "related_entity_id": item.id,
        "priority": after["priority"],
    }
