"""
Services package initialization.
Business logic layer for the print shop ledger.
"""

from .errors import (
    LedgerError,
    LedgerValidationError,
    PaymentExceedsBalanceError,
    NotFoundError,
    AccessDeniedError,
    InvalidOperationError,
    InvalidTransitionError,
    InsufficientStockError,
    DuplicateRecordError,
    ImmutableRecordError,
)
from .identity import CallerIdentity, ensure_job_access
from .notifier import NotificationSink, DatabaseNotificationSink, NullNotificationSink
from .stock_ledger import StockLedger, ConsumeResult
from .usage_journal import MaterialUsageJournal
from .edit_auditor import MaterialEditAuditor, EditOutcome
from .job_ledger import JobLedger, generate_ticket_id, generate_receipt_number
from .job_service import JobService
from .inventory_service import InventoryService

__all__ = [
    'LedgerError',
    'LedgerValidationError',
    'PaymentExceedsBalanceError',
    'NotFoundError',
    'AccessDeniedError',
    'InvalidOperationError',
    'InvalidTransitionError',
    'InsufficientStockError',
    'DuplicateRecordError',
    'ImmutableRecordError',
    'CallerIdentity',
    'ensure_job_access',
    'NotificationSink',
    'DatabaseNotificationSink',
    'NullNotificationSink',
    'StockLedger',
    'ConsumeResult',
    'MaterialUsageJournal',
    'MaterialEditAuditor',
    'EditOutcome',
    'JobLedger',
    'generate_ticket_id',
    'generate_receipt_number',
    'JobService',
    'InventoryService',
]
