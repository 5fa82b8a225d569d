from prometheus_client import Counter, Histogram

# Low-cardinality labels only: never label by object key.
UPLOADS = Counter(
    "attachstore_uploads_total",
    "Upload calls by final outcome",
    ["outcome"],
)

UPLOAD_LATENCY = Histogram(
    "attachstore_upload_duration_seconds",
    "Wall time of an upload call, retries included",
)

RETRIES = Counter(
    "attachstore_retries_total",
    "Failed attempts that were retried",
    ["operation"],
)

DELETES = Counter(
    "attachstore_deletes_total",
    "Delete calls by result",
    ["result"],
)
