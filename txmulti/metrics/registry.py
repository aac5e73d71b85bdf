from prometheus_client import Counter, Histogram

TXMULTI_EXECUTE_TOTAL = Counter(
    "txmulti_execute_total",
    "Multi executions by outcome",
    ["status"],
)

TXMULTI_EXECUTE_LATENCY_SECONDS = Histogram(
    "txmulti_execute_latency_seconds",
    "Wall time of a Multi execution, validation included",
    ["status"],
)

TXMULTI_OPERATIONS_TOTAL = Counter(
    "txmulti_operations_total",
    "Operations run inside a Multi",
    ["kind", "status"],
)

DB_WRITE_TOTAL = Counter(
    "txmulti_db_write_total",
    "Rows written through SqlDataStore",
    ["table", "op_type", "status"],
)

DB_WRITE_LATENCY_SECONDS = Histogram(
    "txmulti_db_write_latency_seconds",
    "Latency of SqlDataStore writes, measured at transaction end",
    ["table", "op_type"],
)
