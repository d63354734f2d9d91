"""Configuration settings for the Application Operator."""

# CRD Settings
CRD_GROUP = "apps.aloys.cn"
CRD_VERSION = "v1"
CRD_PLURAL = "applications"
CRD_KIND = "Application"

# Retry settings (fixed delay, retried indefinitely)
REQUEUE_AFTER_SECONDS = 60

# Watch settings
WATCH_TIMEOUT_SECONDS = 300
WATCH_RETRY_SECONDS = 5

# Controller settings
DEFAULT_WORKERS = 1
RESYNC_INTERVAL_SECONDS = 0  # 0 = periodic resync disabled
