"""Application constants."""

USER_AGENT = "kbob-materials-cache/1.0 (+materials data mirror)"

STRING_FIELDS = ("id", "uuid", "group", "name", "nameFr", "disposal", "unit")
METRIC_FIELDS = (
    "ubpTotal",
    "ubpProduction",
    "ubpDisposal",
    "ghgTotal",
    "ghgProduction",
    "ghgDisposal",
)
DENSITY_FIELDS = ("density", "densityMin", "densityMax")
CANONICAL_FIELDS = (*STRING_FIELDS, *DENSITY_FIELDS, *METRIC_FIELDS)

REJECT_MISSING_UUID = "MissingUUID"
REJECT_EMPTY_GROUP = "EmptyGroup"
REJECT_INVALID_NUMBER = "InvalidNumber"
REJECT_INVALID_FIELD = "InvalidField"
REJECT_DUPLICATE_UUID = "DuplicateUUID"

OVERLAP_WAIT = "wait"
OVERLAP_REJECT = "reject"
OVERLAP_POLICIES = (OVERLAP_WAIT, OVERLAP_REJECT)

SEARCH_LANGUAGES = ("de", "fr")

EXIT_SUCCESS = 0
EXIT_INVALID_REQUEST = 10
EXIT_HARD_FAIL = 20

JSON_LOG_FIELDS = (
    "timestamp",
    "level",
    "run_id",
    "component",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "rows_rejected",
    "error_code",
    "message",
)

COMPARE_METRIC_LABELS = {
    "ubpTotal": "UBP Total",
    "ubpProduction": "UBP Production",
    "ubpDisposal": "UBP Disposal",
    "ghgTotal": "GWP Total",
    "ghgProduction": "GWP Production",
    "ghgDisposal": "GWP Disposal",
    "biogenicCarbon": "Biogenic Carbon",
}
DEFAULT_COMPARE_METRICS = ("ubpTotal", "ghgTotal")
