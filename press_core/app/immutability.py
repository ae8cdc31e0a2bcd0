"""
ORM-level enforcement for append-only ledger tables.

StockAdjustment, Payment and MaterialEditHistory rows are written once.
Mapper events fire before the UPDATE/DELETE reaches the database and abort
the flush with ImmutableRecordError.

Called from create_db_and_tables(); registering twice is a no-op.
"""

from sqlalchemy import event

from .logging_config import get_logger
from .services.errors import ImmutableRecordError

logger = get_logger(__name__)


def _reject(operation):
    def _check(mapper, connection, target):
        entity_type = type(target).__name__
        logger.error("Blocked %s on append-only %s id=%s", operation, entity_type, target.id)
        raise ImmutableRecordError(entity_type, target.id, operation)
    _check.__name__ = f"_reject_{operation.lower()}"
    return _check


_reject_update = _reject("UPDATE")
_reject_delete = _reject("DELETE")


def _protected_models():
    from .models import StockAdjustment, Payment, MaterialEditHistory
    return (StockAdjustment, Payment, MaterialEditHistory)


def register_immutability_listeners():
    for model in _protected_models():
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)


def unregister_immutability_listeners():
    """Tests only."""
    for model in _protected_models():
        if event.contains(model, "before_update", _reject_update):
            event.remove(model, "before_update", _reject_update)
        if event.contains(model, "before_delete", _reject_delete):
            event.remove(model, "before_delete", _reject_delete)
