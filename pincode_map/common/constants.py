"""Application constants."""

USER_AGENT = "pincode-sales-map/1.0 (+sales mapping; contact: configured-email)"
STAGES = (
    "resolve",
    "view",
    "export",
)
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
DEFAULT_STORAGE_KEY = "pincodeCoordinateCache_v1"
EXPORT_HEADERS = ("pincode", "sales", "lat", "lng")
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "batch_id",
    "postal_code",
    "event",
    "status",
    "processed",
    "total",
    "failures",
    "duration_ms",
    "error_code",
    "message",
)
