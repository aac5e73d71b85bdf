from ..metrics.registry import (
    TXMULTI_EXECUTE_LATENCY_SECONDS,
    TXMULTI_EXECUTE_TOTAL,
    TXMULTI_OPERATIONS_TOTAL,
)


def observe_execution(status: str, latency_s: float) -> None:
    TXMULTI_EXECUTE_TOTAL.labels(status=status).inc()
    TXMULTI_EXECUTE_LATENCY_SECONDS.labels(status=status).observe(latency_s)


def observe_operation(kind: str, status: str) -> None:
    TXMULTI_OPERATIONS_TOTAL.labels(kind=kind, status=status).inc()
