"""
Project-wide constants for the Spekra reporter delivery core
"""  # noqa: D200, D212, D415

# ==============================================================================
# API and Network Configuration
# ==============================================================================

DEFAULT_API_URL = "https://spekra.dev/api/reports"

# Retry and timeout settings
TIMEOUT_MS = 15_000
MAX_RETRIES = 3
RETRY_BASE_DELAY_MS = 1_000
RETRY_MAX_DELAY_MS = 10_000
RETRY_JITTER_RATIO = 0.25

# Request bodies above this size (bytes) are gzip-compressed when enabled
COMPRESSION_THRESHOLD = 1024

# ==============================================================================
# Upload Configuration
# ==============================================================================

UPLOAD_CONCURRENCY = 5
UPLOAD_PROGRESS_INTERVAL = 10  # percent

# ==============================================================================
# Result Collection Limits
# ==============================================================================

BATCH_SIZE = 20
MAX_BATCH_SIZE = 1000
MAX_ERROR_LENGTH = 4000
MAX_STACK_TRACE_LINES = 20
MAX_BUFFER_SIZE = 1000

# ==============================================================================
# Headers and Identity
# ==============================================================================

PRODUCT_NAME = "spekra"
SDK_VERSION_HEADER = "X-Spekra-SDK-Version"
REQUEST_ID_HEADER = "X-Request-Id"
CONTENT_ENCODING_GZIP = "gzip"

# ==============================================================================
# Redaction
# ==============================================================================

REDACTION_PLACEHOLDER = "[REDACTED]"
MAX_REDACTION_INPUT_LENGTH = 50_000

SENSITIVE_QUERY_PARAMS = (
    "token",
    "key",
    "api_key",
    "apikey",
    "secret",
    "password",
    "pwd",
    "auth",
    "access_token",
    "refresh_token",
)

# ==============================================================================
# Artifacts
# ==============================================================================

PRE_COMPRESSED_CONTENT_TYPES = frozenset(
    {
        "application/zip",
        "application/gzip",
        "application/x-gzip",
        "application/x-tar",
        "application/x-bzip2",
        "video/webm",
        "video/mp4",
        "video/avi",
        "image/webp",
        "audio/mp3",
        "audio/mpeg",
    }
)

PRE_COMPRESSED_EXTENSIONS = (
    ".zip",
    ".gz",
    ".gzip",
    ".tar.gz",
    ".tgz",
    ".bz2",
    ".webm",
    ".mp4",
    ".avi",
    ".webp",
    ".mp3",
)
