"""
Ledger exceptions.

Routers translate these into HTTP responses; services raise them before or
during the unit of work and db.run_in_transaction rolls back.
"""


class LedgerError(Exception):
    """Base exception for ledger operations"""
    pass


class LedgerValidationError(LedgerError):
    """Request data is malformed or breaks a business rule"""
    pass


class PaymentExceedsBalanceError(LedgerValidationError):
    """Payment amount is larger than the job's outstanding balance"""

    def __init__(self, amount, balance):
        self.amount = amount
        self.balance = balance
        super().__init__(
            f"Payment amount {amount} exceeds outstanding balance {balance}"
        )


class NotFoundError(LedgerError):
    """Referenced job, item or record does not exist"""
    pass


class AccessDeniedError(LedgerError):
    """Caller may not act on this record"""
    pass


class InvalidOperationError(LedgerError):
    """Raised when operation is not allowed in current state"""
    pass


class InvalidTransitionError(InvalidOperationError):
    """Job status may only move forward"""
    pass


class InsufficientStockError(InvalidOperationError):
    """Raised when a manual removal asks for more than is on hand"""
    pass


class DuplicateRecordError(LedgerError):
    """A unique key collided (customer email, ticket id, receipt number)"""

    def __init__(self, code: str, detail: str):
        self.code = code
        self.detail = detail
        super().__init__(detail)


class ImmutableRecordError(LedgerError):
    """An append-only record was updated or deleted"""

    def __init__(self, entity_type: str, entity_id, operation: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.operation = operation
        super().__init__(f"{entity_type} {entity_id} is append-only; {operation} rejected")
