"""
BaseService -- abstract base for all stateful stock services.

Responsibility:
    Common constructor and session-handling contract.  Services use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.  The ledger,
    allocation, valuation, alert and transaction services extend this.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or rollback themselves.  session_scope() or the test
    harness owns commit/rollback, so a multi-line allocation either lands
    entirely or not at all.
"""

from abc import ABC

from sqlalchemy.orm import Session

from stock_kernel.domain.clock import Clock, SystemClock


class BaseService(ABC):
    """
    Abstract base class for all stock services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``.
        - ``self.clock`` is the sole source of "now" and "today".
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
