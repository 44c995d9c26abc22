"""
Stock Kernel

Persistence, domain types and infrastructure for batch-tracked inventory:
- Batch (cost layer) and product models with optimistic versioning
- Append-only inventory transaction log
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Per-product locking and bounded conflict retry
"""

__version__ = "0.1.0"
