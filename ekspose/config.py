"""Configuration settings for the ekspose controller."""

# Work queue
QUEUE_NAME = "ekspose"

# Child Service settings
SERVICE_PORT_NAME = "http"
SERVICE_PORT = 80

# Child Ingress settings
INGRESS_PATH_TYPE = "Prefix"
INGRESS_ANNOTATIONS = {
    "nginx.ingress.kubernetes.io/rewrite-target": "/",
}

# Watch settings
WATCH_TIMEOUT_SECONDS = 300
RELIST_BACKOFF_SECONDS = 5

# Startup
CACHE_SYNC_POLL_SECONDS = 0.1

# Worker settings
DEFAULT_WORKERS = 1
WORKER_RESTART_SECONDS = 1

# Rate limiter defaults (per-item exponential backoff + overall token bucket)
RETRY_BASE_DELAY_SECONDS = 0.005
RETRY_MAX_DELAY_SECONDS = 1000.0
BUCKET_QPS = 10.0
BUCKET_BURST = 100
