"""Constants for BalanceFlow.

This module centralizes all magic numbers and default values used throughout the application.
"""

from datetime import time


# Task defaults
DEFAULT_DURATION_MINUTES = 30
FULL_DAY_MINUTES = 1440

# Working window used for gap detection [start, end)
WORKDAY_START = time(9, 0)
WORKDAY_END = time(17, 30)

# Gap detection
MIN_GAP_MINUTES = 30
FILLER_SAMPLE_SIZE = 3

# Daily load: minutes of scheduled work that count as a "full" day
LOAD_BASELINE_MINUTES = 8 * 60

# Undo buffer
UNDO_WINDOW_SECONDS = 5.0

# Reminder scheduler
REMINDER_TICK_SECONDS = 30.0
FOLLOW_UP_MIN_DELAY_MINUTES = 1
FOLLOW_UP_MAX_DELAY_MINUTES = 60
DEFAULT_SNOOZE_MINUTES = 5
FOLLOW_UP_KEY_PREFIX = "followup_"

# Daily briefing
BRIEFING_TOP_TASKS = 3

# Instance ids: "<master id>_<yyyy-MM-dd>"
INSTANCE_ID_SEPARATOR = "_"
ISO_DATE_FORMAT = "%Y-%m-%d"
