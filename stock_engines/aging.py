"""
Module: stock_engines.aging
Responsibility:
    Classify remaining batch stock into age buckets (days since receipt)
    and expiry buckets (days until expiry).  Used by the valuation report
    and slow-moving / near-expiry analysis.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Purity: as_of_date is always passed in.
    - Decimal-only arithmetic.
    - Every batch with remaining stock lands in exactly one bucket, so
      bucket quantities sum to the total remaining quantity.

Failure modes:
    - ValueError when an age does not fall into any configured bucket
      (only possible with a gapped custom bucket set).

Usage:
    calculator = AgingCalculator()
    buckets = calculator.stock_aging(layers=batches, as_of_date=date(2024, 3, 1))
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from stock_engines.tracer import traced_engine
from stock_kernel.domain.dtos import BatchInfo
from stock_kernel.logging_config import get_logger

logger = get_logger("engines.aging")


@dataclass(frozen=True)
class AgeBucket:
    """
    A contiguous range of days.

    Guarantees:
        - min_days >= 0.
        - max_days >= min_days (when bounded).
    """

    name: str
    min_days: int
    max_days: int | None  # None = unbounded

    def __post_init__(self) -> None:
        if self.min_days < 0:
            raise ValueError("min_days cannot be negative")
        if self.max_days is not None and self.max_days < self.min_days:
            raise ValueError("max_days cannot be less than min_days")

    def contains(self, age_days: int) -> bool:
        if age_days < self.min_days:
            return False
        if self.max_days is None:
            return True
        return age_days <= self.max_days


# Days since receipt
RECEIPT_AGE_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("0-30", 0, 30),
    AgeBucket("31-60", 31, 60),
    AgeBucket("61-90", 61, 90),
    AgeBucket("91-180", 91, 180),
    AgeBucket("Over 180", 181, None),
)

# Days until expiry; already-expired and no-expiry stock are reported apart
EXPIRY_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("0-30", 0, 30),
    AgeBucket("31-90", 31, 90),
    AgeBucket("Over 90", 91, None),
)

EXPIRED_BUCKET_NAME = "Expired"
NO_EXPIRY_BUCKET_NAME = "No expiry"


@dataclass(frozen=True)
class BucketTotal:
    """Remaining quantity and value that fall into one bucket."""

    name: str
    quantity: Decimal
    value: Decimal
    batch_count: int


class AgingCalculator:
    """Pure bucket classifier for batch stock."""

    def __init__(
        self,
        receipt_buckets: Sequence[AgeBucket] = RECEIPT_AGE_BUCKETS,
        expiry_buckets: Sequence[AgeBucket] = EXPIRY_BUCKETS,
    ):
        self._receipt_buckets = tuple(receipt_buckets)
        self._expiry_buckets = tuple(expiry_buckets)

    @property
    def receipt_buckets(self) -> tuple[AgeBucket, ...]:
        return self._receipt_buckets

    @staticmethod
    def classify(age_days: int, buckets: Sequence[AgeBucket]) -> AgeBucket:
        """Bucket containing ``age_days``. Negative ages clamp to 0."""
        age = max(0, age_days)
        for bucket in buckets:
            if bucket.contains(age):
                return bucket
        raise ValueError(f"No bucket found for age {age_days}")

    @staticmethod
    def _totals(
        names: Sequence[str],
        assignments: Sequence[tuple[str, BatchInfo]],
    ) -> tuple[BucketTotal, ...]:
        qty = {name: Decimal("0") for name in names}
        value = {name: Decimal("0") for name in names}
        count = {name: 0 for name in names}
        for name, batch in assignments:
            qty[name] += batch.remaining_quantity
            value[name] += batch.remaining_value
            count[name] += 1
        return tuple(
            BucketTotal(name=n, quantity=qty[n], value=value[n], batch_count=count[n])
            for n in names
        )

    @traced_engine("aging", "1.0", fingerprint_fields=("as_of_date",))
    def stock_aging(
        self,
        *,
        layers: Sequence[BatchInfo],
        as_of_date: date,
    ) -> tuple[BucketTotal, ...]:
        """Remaining stock by days since receipt. Empty batches are ignored."""
        assignments = [
            (
                self.classify(
                    (as_of_date - b.received_date).days, self._receipt_buckets
                ).name,
                b,
            )
            for b in layers
            if b.remaining_quantity > 0
        ]
        return self._totals([b.name for b in self._receipt_buckets], assignments)

    @traced_engine("expiry_profile", "1.0", fingerprint_fields=("as_of_date",))
    def expiry_profile(
        self,
        *,
        layers: Sequence[BatchInfo],
        as_of_date: date,
    ) -> tuple[BucketTotal, ...]:
        """Remaining stock by days until expiry."""
        assignments: list[tuple[str, BatchInfo]] = []
        for b in layers:
            if b.remaining_quantity <= 0:
                continue
            if b.expiry_date is None:
                assignments.append((NO_EXPIRY_BUCKET_NAME, b))
            elif b.expiry_date < as_of_date:
                assignments.append((EXPIRED_BUCKET_NAME, b))
            else:
                bucket = self.classify(
                    (b.expiry_date - as_of_date).days, self._expiry_buckets
                )
                assignments.append((bucket.name, b))
        names = (
            [EXPIRED_BUCKET_NAME]
            + [b.name for b in self._expiry_buckets]
            + [NO_EXPIRY_BUCKET_NAME]
        )
        return self._totals(names, assignments)
