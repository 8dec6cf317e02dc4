import os
from decimal import Decimal

# Database Configuration
# Uses default credentials for local Docker Compose setup
DB_URL = os.getenv("DATABASE_URL", "postgres://user:password@db:5432/hyperlocal_db")

# Application Metadata
PROJECT_NAME = "Hyperlocal Delivery Core"
VERSION = "1.0.0"

# Tenant used when a request carries no X-Tenant-Domain header
DEFAULT_TENANT = os.getenv("DEFAULT_TENANT", "bharatshop")

# Pricing
DELIVERY_FEE = Decimal(os.getenv("DELIVERY_FEE", "30"))
TAX_RATE = Decimal(os.getenv("TAX_RATE", "0.05"))

# Geography
RIDER_SEARCH_RADIUS_KM = float(os.getenv("RIDER_SEARCH_RADIUS_KM", 5))
NEARBY_ZONE_RADIUS_KM = float(os.getenv("NEARBY_ZONE_RADIUS_KM", 10))

# Store operating hours are interpreted in this timezone
MARKET_TIMEZONE = os.getenv("MARKET_TIMEZONE", "Asia/Kolkata")

# Outbox Poller Configuration
POLLING_INTERVAL = int(os.getenv("POLLING_INTERVAL", 1)) # Poller checks for new events every N seconds
MAX_ATTEMPTS = int(os.getenv("MAX_ATTEMPTS", 5)) # Max retries for an event
BATCH_SIZE = int(os.getenv("BATCH_SIZE", 50)) # How many events to fetch per poll
