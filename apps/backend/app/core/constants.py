"""Application-wide constants."""

# ──────────────────────────────────────────────────────────────────────
# Internal request headers
# ──────────────────────────────────────────────────────────────────────

CRON_SECRET_HEADER = "X-Cron-Secret"
INTERNAL_SECRET_HEADER = "X-Internal-Secret"

# ──────────────────────────────────────────────────────────────────────
# Segments
# ──────────────────────────────────────────────────────────────────────

SEGMENT_NAME_MAX_LENGTH = 100
DEFAULT_SEGMENT_COLOR = "#6B7280"
DEFAULT_SEGMENT_ICON = "users"

# ──────────────────────────────────────────────────────────────────────
# Notifications
# ──────────────────────────────────────────────────────────────────────

DEFAULT_CUSTOMER_NAME = "Customer"
DEFAULT_BUSINESS_NAME = "Folio"
