"""
Module: stock_kernel.selectors.base
Responsibility: Base class for read-only query selectors and the single
    soft-delete filter used by every business read.
Architecture position: Kernel > Selectors.  May import from db/, models/
    and domain/.  MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - Soft-delete filter: rows with is_active = false are invisible to
      business logic.  active_only() is the one place that filter is
      written; services that need locked ORM rows build their statements
      on top of it too.
"""

from abc import ABC
from typing import Any

from sqlalchemy import Select, select
from sqlalchemy.orm import Session


def active_only(model: Any, stmt: Select | None = None) -> Select:
    """``SELECT model WHERE is_active`` (or add the filter to ``stmt``)."""
    base = stmt if stmt is not None else select(model)
    return base.where(model.is_active.is_(True))


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return DTOs or computed results.
    """

    def __init__(self, session: Session):
        self.session = session
