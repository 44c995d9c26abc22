"""
Typed exception hierarchy for the stock kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger, the allocation service and the alert service need to
react to failures without parsing messages:

    try:
        inventory.issue(product_id, Decimal("15"), AllocationPolicy.FIFO)
    except InsufficientQuantityError as e:
        backorder(product_id, e.shortfall)      # Structured data
        api_response(code=e.code)               # Machine-readable

Every exception:
  1. Has its own class (catch by type, not message)
  2. Has a CODE class attribute (API-safe)
  3. Carries the identifiers and quantities involved as attributes

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- ValidationError
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- BatchNotFoundError
    |   +-- AlertNotFoundError
    |
    +-- InsufficientQuantityError
    |
    +-- InvalidStateError
    |
    +-- ConcurrencyConflictError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                     | When Raised
-------------------------|------------------------------------------------------
VALIDATION_ERROR         | Non-positive quantity, negative cost, bad dates
NOT_FOUND                | Generic missing entity
PRODUCT_NOT_FOUND        | Product id unknown or soft-deleted
BATCH_NOT_FOUND          | Batch id unknown or soft-deleted
ALERT_NOT_FOUND          | Alert id unknown
INSUFFICIENT_QUANTITY    | Consume/issue larger than what is on hand
INVALID_STATE            | Consume a consumed batch, acknowledge a resolved alert
CONCURRENCY_CONFLICT     | Lock timeout or optimistic version mismatch

Handling guidance:
   - ValidationError / NotFoundError -> reject the request, do not retry
   - InsufficientQuantityError       -> partial fulfilment or backorder
   - InvalidStateError               -> reject, the entity moved on
   - ConcurrencyConflictError        -> retry the whole operation

===============================================================================
"""

from decimal import Decimal


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses define a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


class ValidationError(StockKernelError):
    """Input rejected before any state was touched."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


# Lookup failures


class NotFoundError(StockKernelError):
    """Referenced entity does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, entity_id: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class ProductNotFoundError(NotFoundError):
    """Product does not exist or has been deactivated."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__("Product", product_id)


class BatchNotFoundError(NotFoundError):
    """Batch does not exist or has been soft-deleted."""

    code: str = "BATCH_NOT_FOUND"

    def __init__(self, batch_id: str):
        self.batch_id = batch_id
        super().__init__("Batch", batch_id)


class AlertNotFoundError(NotFoundError):
    code: str = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__("StockAlert", alert_id)


# Quantity and state


class InsufficientQuantityError(StockKernelError):
    """
    Requested quantity exceeds what is available.

    `shortfall` is always requested - available, so a caller can decide to
    backorder exactly the missing amount.
    """

    code: str = "INSUFFICIENT_QUANTITY"

    def __init__(
        self,
        entity_id: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.entity_id = entity_id
        self.requested = requested
        self.available = available
        self.shortfall = requested - available
        super().__init__(
            f"Insufficient quantity for {entity_id}: "
            f"requested {requested}, available {available}, "
            f"shortfall {self.shortfall}"
        )


class InvalidStateError(StockKernelError):
    """Operation not allowed from the entity's current status."""

    code: str = "INVALID_STATE"

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        current_state: str,
        operation: str,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.current_state = current_state
        self.operation = operation
        super().__init__(
            f"Cannot {operation} {entity_type} {entity_id} "
            f"in state '{current_state}'"
        )


class ConcurrencyConflictError(StockKernelError):
    """Lock could not be acquired in time or a row changed underneath us."""

    code: str = "CONCURRENCY_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, reason: str = ""):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Concurrency conflict on {entity_type} {entity_id}{detail}"
        )
