"""Application constants."""

USER_AGENT = "geosheet/1.0 (+spreadsheet geocoder)"
EXIT_SUCCESS = 0
EXIT_PARTIAL = 10
EXIT_HARD_FAIL = 20
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"
GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
OOB_REDIRECT_URI = "urn:ietf:wg:oauth:2.0:oob"
GEOCODE_ENDPOINT = "https://maps.googleapis.com/maps/api/geocode/json"
JITTER_MAX = 0.01
ENV_SPREADSHEET_ID = "GEOSHEET_SPREADSHEET_ID"
ENV_GEOCODE_API_KEY = "GEOSHEET_GEOCODE_API_KEY"
JSON_LOG_FIELDS = (
    "timestamp",
    "run_id",
    "stage",
    "row_index",
    "query",
    "event",
    "status",
    "duration_ms",
    "rows_in",
    "rows_out",
    "error_code",
    "message",
)
