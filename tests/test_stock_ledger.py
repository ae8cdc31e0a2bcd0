"""
Tests for StockLedger: fail-soft consumption, replenishment, edit deltas,
manual adjustments and row locking.
"""

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Query

from press_core.app.models import InventoryItem, StockAdjustment, AdjustmentType
from press_core.app.services.errors import (
    InsufficientStockError, LedgerValidationError, NotFoundError,
)
from press_core.app.services.stock_ledger import StockLedger


class TestConsume:
    def test_full_consumption(self, db, admin, make_item, sink):
        item = make_item(stock=1000, threshold=100)
        result = StockLedger.consume(db, item.id, 250, admin, notifier=sink)

        assert result.sheets_consumed == 250
        assert result.new_stock == 750
        assert not result.is_shortage
        assert item.current_stock_sheets == 750
        assert sink.sent == []

    def test_overdraw_stops_at_zero(self, db, admin, make_item, sink):
        item = make_item(stock=400, threshold=100)
        result = StockLedger.consume(db, item.id, 900, admin, job_id=None, notifier=sink)

        assert result.sheets_consumed == 400
        assert result.new_stock == 0
        assert result.sheets_short == 500
        assert result.is_shortage
        assert item.current_stock_sheets == 0

        shortage = [n for n in sink.sent if n["title"] == "Stock Shortage"]
        assert len(shortage) == 1
        assert shortage[0]["priority"] == "high"

    def test_shortage_is_logged_as_warning(self, db, admin, make_item, sink, caplog):
        item = make_item(stock=10, threshold=0)
        with caplog.at_level("WARNING", logger="press_core"):
            StockLedger.consume(db, item.id, 50, admin, notifier=sink)
        assert any("Stock shortage" in r.getMessage() for r in caplog.records)

    def test_zero_is_a_no_op(self, db, admin, make_item, sink):
        item = make_item(stock=100, threshold=150)
        result = StockLedger.consume(db, item.id, 0, admin, notifier=sink)
        assert result.new_stock == 100
        assert sink.sent == []

    def test_negative_request_rejected(self, db, admin, make_item):
        item = make_item()
        with pytest.raises(LedgerValidationError):
            StockLedger.consume(db, item.id, -5, admin)

    def test_unknown_item(self, db, admin):
        with pytest.raises(NotFoundError):
            StockLedger.consume(db, 9999, 5, admin)

    def test_threshold_transition_alerts_once(self, db, admin, make_item, sink):
        item = make_item(stock=150, threshold=100)  # LOW already
        StockLedger.consume(db, item.id, 10, admin, notifier=sink)
        assert sink.sent == []

        StockLedger.consume(db, item.id, 40, admin, notifier=sink)  # 100 -> CRITICAL
        assert len(sink.of_type("low_stock")) == 1
        assert sink.sent[0]["priority"] == "high"

        StockLedger.consume(db, item.id, 10, admin, notifier=sink)
        assert len(sink.of_type("low_stock")) == 1

    def test_never_negative_for_any_request(self, db, admin, make_item):
        item = make_item(stock=37, threshold=0)
        for requested in (5, 40, 1, 100):
            StockLedger.consume(db, item.id, requested, admin)
            assert item.current_stock_sheets >= 0
        assert item.current_stock_sheets == 0


class TestReplenish:
    def test_adds_and_records_adjustment(self, db, admin, make_item, sink):
        item = make_item(stock=100, threshold=50)
        new_stock = StockLedger.replenish(db, item.id, 500, "Delivery from supplier", admin, notifier=sink)

        assert new_stock == 600
        adj = db.query(StockAdjustment).filter_by(material_id=item.id).one()
        assert adj.adjustment_type == AdjustmentType.ADD
        assert (adj.sheets_change, adj.stock_before, adj.stock_after) == (500, 100, 600)
        assert adj.adjusted_by == admin.user_id

    def test_updates_purchase_price(self, db, admin, make_item):
        item = make_item(unit_cost="5000.00")
        StockLedger.replenish(db, item.id, 500, "New supplier price", admin, unit_cost="5500")
        assert str(item.unit_cost) == "5500.00"
        assert str(item.cost_per_sheet) == "11.0000"

    @pytest.mark.parametrize("amount", [0, -10])
    def test_rejects_non_positive(self, db, admin, make_item, amount):
        item = make_item()
        with pytest.raises(LedgerValidationError):
            StockLedger.replenish(db, item.id, amount, "nothing", admin)


class TestApplyDelta:
    def test_positive_returns_stock(self, db, admin, make_item, sink):
        item = make_item(stock=200, threshold=0)
        StockLedger.apply_delta(db, item.id, 30, admin, reason="Over-recorded", notifier=sink)
        assert item.current_stock_sheets == 230
        adj = db.query(StockAdjustment).filter_by(material_id=item.id).one()
        assert adj.adjustment_type == AdjustmentType.CORRECTION
        assert adj.sheets_change == 30

    def test_negative_consumes_with_shortage_policy(self, db, admin, make_item, sink):
        item = make_item(stock=20, threshold=0)
        result = StockLedger.apply_delta(db, item.id, -30, admin, reason="Under-recorded", notifier=sink)
        assert result.sheets_consumed == 20
        assert result.is_shortage
        assert item.current_stock_sheets == 0
        adj = db.query(StockAdjustment).filter_by(material_id=item.id).one()
        assert adj.sheets_change == -20


class TestAdjust:
    def test_remove_is_strict(self, db, admin, make_item):
        item = make_item(stock=100)
        with pytest.raises(InsufficientStockError):
            StockLedger.adjust(db, item.id, "remove", 101, admin, reason="Damaged")
        assert item.current_stock_sheets == 100

    def test_remove(self, db, admin, make_item, sink):
        item = make_item(stock=100, threshold=0)
        adj = StockLedger.adjust(db, item.id, AdjustmentType.REMOVE, 40, admin, reason="Water damage", notifier=sink)
        assert item.current_stock_sheets == 60
        assert adj.sheets_change == -40

    def test_set_absolute(self, db, admin, make_item, sink):
        item = make_item(stock=100, threshold=0)
        adj = StockLedger.adjust(db, item.id, "set", 1000, admin, reason="Stock count", notifier=sink)
        assert item.current_stock_sheets == 1000
        assert (adj.stock_before, adj.stock_after, adj.sheets_change) == (100, 1000, 900)

    def test_add_delegates_to_replenish(self, db, admin, make_item, sink):
        item = make_item(stock=0, threshold=0)
        adj = StockLedger.adjust(db, item.id, "add", 500, admin, reason="Delivery", notifier=sink)
        assert adj.adjustment_type == AdjustmentType.ADD
        assert item.current_stock_sheets == 500

    def test_reason_required(self, db, admin, make_item):
        item = make_item()
        with pytest.raises(LedgerValidationError):
            StockLedger.adjust(db, item.id, "set", 10, admin, reason="  ")

    def test_correction_not_allowed_manually(self, db, admin, make_item):
        item = make_item()
        with pytest.raises(LedgerValidationError):
            StockLedger.adjust(db, item.id, "correction", 10, admin, reason="manual")


class TestRowLocking:
    def test_lock_query_emits_for_update_on_postgres(self, db):
        stmt = db.query(InventoryItem).filter(InventoryItem.id == 1).with_for_update().statement
        sql = str(stmt.compile(dialect=postgresql.dialect()))
        assert "FOR UPDATE" in sql

    def test_consume_locks_the_item_row(self, db, admin, make_item, monkeypatch):
        item = make_item(stock=100)
        locked = []
        original = Query.with_for_update

        def spy(self, *args, **kwargs):
            locked.append(self.column_descriptions[0]["entity"])
            return original(self, *args, **kwargs)

        monkeypatch.setattr(Query, "with_for_update", spy)
        StockLedger.consume(db, item.id, 10, admin)
        assert InventoryItem in locked
