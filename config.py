"""
Configuration - Environment-driven settings for the mastery engine.

Variables (read from the environment or a .env file):
    MASTERY_CATALOG_DIR        -> Directory of per-grade curriculum JSON files
    MASTERY_DEFAULT_DECAY_RATE -> Points of mastery lost per day for keys
                                  without a catalog-specific rate
    MASTERY_LOG_LEVEL          -> Logging level used by the demo entry point
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Load environment variables from .env
load_dotenv()

CATALOG_DIR = Path(os.getenv("MASTERY_CATALOG_DIR", "data/catalog"))

# Initial decay rate the homework analysis assigns to a fresh observation
DEFAULT_DECAY_RATE = float(os.getenv("MASTERY_DEFAULT_DECAY_RATE", 0.1))

LOG_LEVEL = os.getenv("MASTERY_LOG_LEVEL", "WARNING").upper()
