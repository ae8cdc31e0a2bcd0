from decimal import Decimal

import pytest

from press_core.app.models import MaterialEditHistory, MaterialUsage, StockAdjustment
from press_core.app.services.edit_auditor import (
    MaterialEditAuditor, ADDED_SUFFIX, DELETED_SUFFIX,
)
from press_core.app.services.errors import (
    AccessDeniedError, LedgerValidationError, NotFoundError,
)
from press_core.app.services.usage_journal import MaterialUsageJournal


def _same(record, material_line, **changes):
    """A line that mirrors `record` apart from `changes`"""
    fields = dict(
        id=record.id,
        material_id=record.material_id,
        material_name=record.material_name,
        paper_size=record.paper_size,
        paper_type=record.paper_type,
        grammage=record.grammage,
        quantity=record.quantity_sheets,
    )
    fields.update(changes)
    return material_line(**fields)


@pytest.fixture
def job_with_line(db, worker, make_item, make_job, sink, material_line):
    item = make_item(stock=1000, threshold=0)
    job = make_job(worker)
    record, _ = MaterialUsageJournal.record(
        db, job.id, worker, material_line(material_id=item.id, quantity=50), notifier=sink,
    )
    sink.sent.clear()
    return job, item, record


class TestEditLine:
    def test_quantity_increase_consumes_the_difference(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        assert item.current_stock_sheets == 950

        outcome = MaterialEditAuditor.apply_edits(
            db, job.id, [_same(record, material_line, quantity=80)],
            "Customer added more copies", worker, notifier=sink,
        )

        assert outcome.updated == [record.id]
        assert item.current_stock_sheets == 920
        assert record.quantity_sheets == 80
        assert record.total_cost == Decimal("800.00")

        history = db.query(MaterialEditHistory).filter_by(job_id=job.id).all()
        assert len(history) == 1
        row = history[0]
        assert (row.previous_quantity, row.new_quantity) == (50, 80)
        assert row.previous_total_cost == Decimal("500.00")
        assert row.stock_delta_sheets == -30
        assert row.edit_reason == "Customer added more copies"
        assert row.edited_by == worker.user_id
        assert len(sink.of_type("materials_updated")) == 1

    def test_quantity_decrease_returns_stock(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        MaterialEditAuditor.apply_edits(
            db, job.id, [_same(record, material_line, quantity=20)],
            "Over-recorded on the floor", worker, notifier=sink,
        )
        assert item.current_stock_sheets == 980
        assert record.quantity_sheets == 20
        correction = db.query(StockAdjustment).filter_by(material_id=item.id).one()
        assert correction.sheets_change == 30

    def test_increase_beyond_stock_caps_quantity(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        outcome = MaterialEditAuditor.apply_edits(
            db, job.id, [_same(record, material_line, quantity=2000)],
            "Large reprint needed", worker, notifier=sink,
        )
        assert item.current_stock_sheets == 0
        assert record.quantity_sheets == 1000
        assert record.sheets_short == 1000
        assert len(outcome.shortages) == 1

    def test_unchanged_line_is_a_no_op(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        outcome = MaterialEditAuditor.apply_edits(
            db, job.id, [_same(record, material_line)], "Just checking", worker, notifier=sink,
        )
        assert outcome.unchanged == [record.id]
        assert not outcome.has_changes
        assert item.current_stock_sheets == 950
        assert db.query(MaterialEditHistory).count() == 0
        assert db.query(StockAdjustment).count() == 0
        assert sink.sent == []

    def test_resubmitting_the_creating_line_is_a_no_op(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        # same payload that recorded the line; paper fields were inherited from the item
        outcome = MaterialEditAuditor.apply_edits(
            db, job.id, [material_line(id=record.id, material_id=item.id, quantity=50)],
            "Saved without changes", worker, notifier=sink,
        )
        assert outcome.unchanged == [record.id]
        assert outcome.updated == []
        assert db.query(MaterialEditHistory).count() == 0
        assert sink.of_type("materials_updated") == []
        assert (record.paper_size, record.paper_type, record.grammage) == ("A4", "Bond", 80)

    def test_omitted_paper_fields_survive_a_quantity_edit(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        MaterialEditAuditor.apply_edits(
            db, job.id, [material_line(id=record.id, quantity=70)],
            "Five more sheets per pad", worker, notifier=sink,
        )
        assert record.quantity_sheets == 70
        assert record.material_id == item.id
        assert (record.paper_size, record.paper_type, record.grammage) == ("A4", "Bond", 80)

        row = db.query(MaterialEditHistory).one()
        assert row.previous_paper_size == row.new_paper_size == "A4"
        assert row.new_grammage == 80

    def test_material_swap_moves_stock_between_items(self, db, worker, make_item, sink, job_with_line, material_line):
        job, old_item, record = job_with_line
        new_item = make_item(name="A4 100gsm Bond", stock=500, threshold=0, grammage=100, unit_cost="6000.00")

        MaterialEditAuditor.apply_edits(
            db, job.id,
            [_same(record, material_line, material_id=new_item.id, material_name="A4 100gsm Bond", grammage=100)],
            "Wrong paper recorded", worker, notifier=sink,
        )
        assert old_item.current_stock_sheets == 1000
        assert new_item.current_stock_sheets == 450
        assert record.material_id == new_item.id
        assert record.unit_cost == Decimal("12.0000")

        row = db.query(MaterialEditHistory).one()
        assert row.previous_material_id == old_item.id
        assert row.returned_sheets == 50
        assert row.stock_delta_sheets == -50

    def test_relink_without_inventory_update_records_the_return(
        self, db, worker, make_item, sink, job_with_line, material_line,
    ):
        job, old_item, record = job_with_line
        new_item = make_item(name="A4 Recycled", stock=500, threshold=0)

        MaterialEditAuditor.apply_edits(
            db, job.id,
            [material_line(id=record.id, material_id=new_item.id, material_name="A4 Recycled",
                           quantity=50, update_inventory=False)],
            "Recycled stock was used", worker, notifier=sink,
        )
        assert old_item.current_stock_sheets == 1000
        assert new_item.current_stock_sheets == 500
        assert record.inventory_updated is False

        row = db.query(MaterialEditHistory).one()
        assert row.stock_delta_sheets == 0
        assert row.returned_sheets == 50
        assert row.previous_material_id == old_item.id


class TestAddAndDelete:
    def test_new_line_is_added(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        outcome = MaterialEditAuditor.apply_edits(
            db, job.id,
            [_same(record, material_line), material_line(material_id=item.id, quantity=25)],
            "Forgot the cover sheets", worker, notifier=sink,
        )
        assert len(outcome.added) == 1
        assert item.current_stock_sheets == 925

        row = db.query(MaterialEditHistory).one()
        assert row.edit_reason == "Forgot the cover sheets" + ADDED_SUFFIX
        assert row.previous_quantity is None
        assert row.new_quantity == 25

    def test_omitted_line_is_deleted_without_returning_stock(self, db, worker, sink, job_with_line):
        job, item, record = job_with_line
        record_id = record.id
        outcome = MaterialEditAuditor.apply_edits(db, job.id, [], "Line entered twice", worker, notifier=sink)

        assert outcome.deleted == [record_id]
        assert db.query(MaterialUsage).filter_by(id=record_id).first() is None
        assert item.current_stock_sheets == 950

        row = db.query(MaterialEditHistory).one()
        assert row.edit_reason == "Line entered twice" + DELETED_SUFFIX
        assert row.previous_quantity == 50
        assert row.new_quantity is None
        assert row.material_usage_id == record_id

    def test_delete_returns_stock_when_enabled(self, db, worker, sink, job_with_line):
        job, item, record = job_with_line
        MaterialEditAuditor.apply_edits(
            db, job.id, [], "Job cancelled", worker, return_stock_on_delete=True, notifier=sink,
        )
        assert item.current_stock_sheets == 1000
        assert db.query(MaterialEditHistory).one().stock_delta_sheets == 50


class TestRejections:
    @pytest.mark.parametrize("reason", [None, "", "abc", "    ok  "])
    def test_reason_too_short(self, db, worker, sink, job_with_line, reason):
        job, _, _ = job_with_line
        with pytest.raises(LedgerValidationError):
            MaterialEditAuditor.apply_edits(db, job.id, [], reason, worker, notifier=sink)

    def test_zero_quantity_rejected(self, db, worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        with pytest.raises(LedgerValidationError):
            MaterialEditAuditor.apply_edits(
                db, job.id, [_same(record, material_line, quantity=0)], "Zeroing out", worker, notifier=sink,
            )
        assert item.current_stock_sheets == 950

    def test_duplicate_line_ids(self, db, worker, sink, job_with_line, material_line):
        job, _, record = job_with_line
        with pytest.raises(LedgerValidationError):
            MaterialEditAuditor.apply_edits(
                db, job.id, [_same(record, material_line), _same(record, material_line, quantity=60)],
                "Duplicate lines", worker, notifier=sink,
            )

    def test_line_from_another_job(self, db, worker, sink, make_job, job_with_line, material_line):
        job, item, record = job_with_line
        other_job = make_job(worker, phone="08039999999")
        with pytest.raises(NotFoundError):
            MaterialEditAuditor.apply_edits(
                db, other_job.id, [_same(record, material_line)], "Wrong job edit", worker, notifier=sink,
            )

    def test_other_worker_cannot_edit(self, db, other_worker, sink, job_with_line, material_line):
        job, item, record = job_with_line
        with pytest.raises(AccessDeniedError):
            MaterialEditAuditor.apply_edits(
                db, job.id, [_same(record, material_line, quantity=10)], "Not my job", other_worker, notifier=sink,
            )
        assert item.current_stock_sheets == 950

    def test_admin_can_edit_any_job(self, db, admin, sink, job_with_line, material_line):
        job, item, record = job_with_line
        outcome = MaterialEditAuditor.apply_edits(
            db, job.id, [_same(record, material_line, quantity=40)], "Admin correction", admin, notifier=sink,
        )
        assert outcome.updated == [record.id]
        assert item.current_stock_sheets == 960

    def test_unknown_job(self, db, admin, sink):
        with pytest.raises(NotFoundError):
            MaterialEditAuditor.apply_edits(db, 777, [], "Missing job", admin, notifier=sink)
