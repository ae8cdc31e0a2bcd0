from decimal import Decimal
from types import SimpleNamespace

import pytest

from press_core.app.models import PaymentStatus
from press_core.app.services.alerts import (
    check_stock_status, payment_status, stock_alert, CRITICAL, LOW, HEALTHY,
)


class TestCheckStockStatus:
    @pytest.mark.parametrize("current,threshold,expected", [
        (0, 150, CRITICAL),
        (150, 150, CRITICAL),
        (151, 150, LOW),
        (225, 150, LOW),
        (226, 150, HEALTHY),
        (10_000, 150, HEALTHY),
    ])
    def test_bands(self, current, threshold, expected):
        assert check_stock_status(current, threshold)["status"] == expected

    def test_band_rule_holds_over_a_range(self):
        threshold = 100
        for current in range(0, 300):
            status = check_stock_status(current, threshold)["status"]
            if current <= threshold:
                assert status == CRITICAL
            elif current <= threshold * 1.5:
                assert status == LOW
            else:
                assert status == HEALTHY

    def test_priority_mapping(self):
        assert check_stock_status(10, 100)["priority"] == "high"
        assert check_stock_status(120, 100)["priority"] == "medium"
        assert check_stock_status(500, 100)["priority"] == "low"

    def test_percentage_and_is_low(self):
        result = check_stock_status(75, 150)
        assert result["percentage"] == 50
        assert result["is_low"] is True
        assert result["display"] == "75 sheets (50% of threshold)"

    def test_zero_threshold_reports_zero_percent(self):
        result = check_stock_status(400, 0)
        assert result["percentage"] == 0
        assert result["status"] == HEALTHY
        assert check_stock_status(0, 0)["status"] == CRITICAL

    def test_draining_stock_moves_low_then_critical(self):
        threshold = 100
        assert check_stock_status(150, threshold)["status"] == LOW
        assert check_stock_status(140, threshold)["status"] == LOW
        assert check_stock_status(100, threshold)["status"] == CRITICAL


class TestPaymentStatus:
    def test_pending(self):
        assert payment_status(Decimal("10000"), Decimal("0")) == PaymentStatus.PENDING

    def test_partially_paid(self):
        assert payment_status(Decimal("10000"), Decimal("4000")) == PaymentStatus.PARTIALLY_PAID

    def test_fully_paid(self):
        assert payment_status(Decimal("10000"), Decimal("10000")) == PaymentStatus.FULLY_PAID

    def test_zero_cost_job_is_fully_paid(self):
        assert payment_status(0, 0) == PaymentStatus.FULLY_PAID


def _item(stock, threshold=100):
    return SimpleNamespace(id=7, material_name="A3 Gloss", current_stock_sheets=stock,
                           threshold_sheets=threshold, sheets_per_unit=500)


class TestStockAlert:
    def test_no_alert_while_healthy(self):
        assert stock_alert(_item(400), stock_before=500) is None

    def test_alert_on_transition_to_low(self):
        alert = stock_alert(_item(140), stock_before=200)
        assert alert["priority"] == "medium"
        assert alert["type"] == "low_stock"
        assert alert["related_entity_id"] == 7

    def test_alert_on_transition_to_critical(self):
        alert = stock_alert(_item(90), stock_before=140)
        assert alert["title"] == "Critical Stock Alert"
        assert alert["priority"] == "high"

    def test_no_repeat_alert_within_same_band(self):
        assert stock_alert(_item(80), stock_before=90) is None

    def test_shortage_always_alerts_high(self):
        alert = stock_alert(_item(0), stock_before=0, shortage_sheets=60)
        assert alert["title"] == "Stock Shortage"
        assert alert["priority"] == "high"
        assert "60 sheets" in alert["message"]
