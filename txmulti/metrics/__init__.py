from .registry import (
    DB_WRITE_LATENCY_SECONDS,
    DB_WRITE_TOTAL,
    TXMULTI_EXECUTE_LATENCY_SECONDS,
    TXMULTI_EXECUTE_TOTAL,
    TXMULTI_OPERATIONS_TOTAL,
)

__all__ = [
    "DB_WRITE_TOTAL",
    "DB_WRITE_LATENCY_SECONDS",
    "TXMULTI_EXECUTE_TOTAL",
    "TXMULTI_EXECUTE_LATENCY_SECONDS",
    "TXMULTI_OPERATIONS_TOTAL",
]
