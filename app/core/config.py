import os

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/school_inventory")

# Application Metadata
PROJECT_NAME = "School Inventory Service"
VERSION = "1.0.0"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Outbox Poller Configuration (delivers item change notifications)
RUN_OUTBOX_POLLER = os.getenv("RUN_OUTBOX_POLLER", "true").lower() == "true" # Poll inside the API process
POLLING_INTERVAL = int(os.getenv("POLLING_INTERVAL", 1)) # Poller checks for new events every N seconds
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", 5)) # Max retries for an event
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 50)) # How many events to fetch per poll

# Stock Reconciliation
RECONCILE_MAX_ATTEMPTS = int(os.getenv("RECONCILE_MAX_ATTEMPTS", 3)) # Tries for the item write after a ledger insert
RECONCILE_BACKOFF_SECONDS = float(os.getenv("RECONCILE_BACKOFF_SECONDS", 0.2)) # Multiplied by the attempt number

# Listing
DEFAULT_PAGE_SIZE = int(os.getenv("DEFAULT_PAGE_SIZE", 20))
MAX_PAGE_SIZE = int(os.getenv("MAX_PAGE_SIZE", 100))

# Users
USER_EMAIL_DOMAIN = os.getenv("USER_EMAIL_DOMAIN", "") # e.g. "@school.edu"; empty accepts any address
