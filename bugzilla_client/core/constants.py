"""Core client constants."""

# Time constants
MILLISECONDS_PER_SECOND = 1000

# Wire vocabulary
CUSTOM_FIELD_PREFIX = "cf_"
DIFF_SEPARATOR = ", "
COLLECTION_ADD = "add"
COLLECTION_REMOVE = "remove"
COLLECTION_SET = "set"
TOKEN_PARAM = "Bugzilla_token"
API_KEY_PARAM = "Bugzilla_api_key"

# Server-documented limits, checked before a call is made
MAX_COMMENT_LENGTH = 65535
MAX_SUMMARY_LENGTH = 255
MAX_HOURS = 99999.99

# Deadlines are dates without a time of day
DEADLINE_FORMAT = "%Y-%m-%d"

# Security and redaction
REDACTED = "[REDACTED]"
