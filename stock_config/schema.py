"""
Stock configuration schema.

Defines the structure and defaults for allocation, valuation, alert and
concurrency settings.  Values are loaded from YAML at runtime through
``stock_config.get_active_config()``.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from decimal import Decimal
from typing import Any, Self

from stock_kernel.logging_config import get_logger

logger = get_logger("config.schema")

VALID_POLICIES = {"fifo", "lifo"}
VALID_VALUATION_METHODS = {"fifo", "lifo", "average"}

DEFAULT_AGING_BUCKETS: tuple[tuple[str, int, int | None], ...] = (
    ("0-30", 0, 30),
    ("31-60", 31, 60),
    ("61-90", 61, 90),
    ("91-180", 91, 180),
    ("Over 180", 181, None),
)


@dataclass(frozen=True)
class StockConfig:
    """
    Runtime settings for the stock services.

    Override at instantiation or through a YAML file:

        config = StockConfig(default_policy="lifo", expiry_warning_days=45)
    """

    config_id: str = "default"

    # Allocation and valuation
    default_policy: str = "fifo"
    default_valuation_method: str = "fifo"

    # Expiry alerts
    expiry_warning_days: int = 30
    expiry_high_days: int = 7
    expiry_medium_days: int = 15

    # Low stock priority (stock / reorder_level)
    low_stock_high_ratio: Decimal = Decimal("0.25")
    low_stock_medium_ratio: Decimal = Decimal("0.5")

    # Concurrency
    lock_timeout_seconds: float = 10.0
    max_conflict_retries: int = 3

    # Re-evaluate a product's alerts inside each ledger mutation's unit of work
    auto_evaluate_alerts: bool = True

    aging_buckets: tuple[tuple[str, int, int | None], ...] = field(
        default=DEFAULT_AGING_BUCKETS
    )

    def __post_init__(self):
        if self.default_policy not in VALID_POLICIES:
            raise ValueError(
                f"default_policy must be one of {VALID_POLICIES}, "
                f"got '{self.default_policy}'"
            )
        if self.default_valuation_method not in VALID_VALUATION_METHODS:
            raise ValueError(
                f"default_valuation_method must be one of "
                f"{VALID_VALUATION_METHODS}, got '{self.default_valuation_method}'"
            )
        if self.expiry_warning_days <= 0:
            raise ValueError("expiry_warning_days must be positive")
        if not 0 <= self.expiry_high_days <= self.expiry_medium_days <= self.expiry_warning_days:
            raise ValueError(
                "expiry thresholds must satisfy 0 <= expiry_high_days <= "
                "expiry_medium_days <= expiry_warning_days"
            )
        if not 0 < self.low_stock_high_ratio <= self.low_stock_medium_ratio <= 1:
            raise ValueError(
                "low stock ratios must satisfy 0 < low_stock_high_ratio <= "
                "low_stock_medium_ratio <= 1"
            )
        if self.lock_timeout_seconds <= 0:
            raise ValueError("lock_timeout_seconds must be positive")
        if self.max_conflict_retries < 1:
            raise ValueError("max_conflict_retries must be at least 1")
        if not self.aging_buckets:
            raise ValueError("aging_buckets cannot be empty")
        if self.aging_buckets[0][1] != 0:
            raise ValueError("first aging bucket must start at 0 days")
        for (_, _, prev_max), (name, lo, _) in zip(
            self.aging_buckets, self.aging_buckets[1:]
        ):
            if prev_max is None or lo != prev_max + 1:
                raise ValueError(f"aging bucket '{name}' does not follow the previous one")
        if self.aging_buckets[-1][2] is not None:
            raise ValueError("last aging bucket must be unbounded")

        logger.info(
            "stock_config_initialized",
            extra={
                "config_id": self.config_id,
                "default_policy": self.default_policy,
                "default_valuation_method": self.default_valuation_method,
                "expiry_warning_days": self.expiry_warning_days,
                "lock_timeout_seconds": self.lock_timeout_seconds,
                "max_conflict_retries": self.max_conflict_retries,
                "auto_evaluate_alerts": self.auto_evaluate_alerts,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        return cls()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Self:
        """Create config from a dict (e.g. parsed YAML). Unknown keys are rejected."""
        logger.info(
            "stock_config_loading_from_dict",
            extra={"keys": sorted(data.keys())},
        )
        known = {f for f in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        values = dict(data)
        for key in ("low_stock_high_ratio", "low_stock_medium_ratio"):
            if key in values:
                values[key] = Decimal(str(values[key]))
        if "lock_timeout_seconds" in values:
            values["lock_timeout_seconds"] = float(values["lock_timeout_seconds"])
        if "aging_buckets" in values:
            values["aging_buckets"] = tuple(
                (str(b["name"]), int(b["min_days"]),
                 None if b.get("max_days") is None else int(b["max_days"]))
                for b in values["aging_buckets"]
            )
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["aging_buckets"] = [
            {"name": n, "min_days": lo, "max_days": hi} for n, lo, hi in self.aging_buckets
        ]
        return data
