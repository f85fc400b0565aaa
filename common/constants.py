"""Project-wide constants (limits, default timeouts, transport options)."""

DEFAULT_PAGE_LIMIT: int = 10
MAX_PAGE_LIMIT: int = 100
DEFAULT_ORDER: str = "DESC"
VALID_ORDERS = ("ASC", "DESC")

DEFAULT_RPC_TIMEOUT_MS: int = 30000
QUOTA_DECREMENT_TIMEOUT_MS: int = 5000
QUOTA_REFUND_TIMEOUT_MS: int = 10000

GRPC_KEEPALIVE_TIME_MS: int = 30000
GRPC_KEEPALIVE_TIMEOUT_MS: int = 10000
CODEC_TIMEOUT_SECONDS: int = 60

PREVIEW_FORMATS = ("jpeg", "png", "webp")
DEFAULT_PREVIEW_FORMAT: str = "jpeg"
