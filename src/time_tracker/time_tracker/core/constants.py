"""Constants and defaults.

Note: Keep constants here to avoid magic numbers spread across code.
"""

from datetime import time

END_OF_DAY = time(23, 59, 59, 999000)
DEFAULT_HOURLY_RATE = 25
DEFAULT_READ_RETRY_ATTEMPTS = 3
MAX_TAG_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 1000
