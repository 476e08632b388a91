import os
from pathlib import Path

# Base directory
BASE_DIR = Path(__file__).resolve().parent.parent

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR}/scorecast.db")

# Operator access for the recompute endpoint
ADMIN_TOKEN = os.getenv("ADMIN_TOKEN", "")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# Store limits ("in" filters and write batches)
MAX_IN_QUERY_VALUES = int(os.getenv("MAX_IN_QUERY_VALUES", "30"))
MAX_BATCH_WRITES = int(os.getenv("MAX_BATCH_WRITES", "500"))

# Leaderboard
LEADERBOARD_PAGE_SIZE = int(os.getenv("LEADERBOARD_PAGE_SIZE", "100"))
DEFAULT_DISPLAY_NAME = "Player"

# Deny every store write (maintenance windows, replicas)
READ_ONLY = os.getenv("SCORECAST_READ_ONLY", "0") == "1"
