"""Constants for creditboard.

This module centralizes all magic numbers and default values used throughout the application.
"""

import os
from datetime import timedelta
from dotenv import load_dotenv

from creditboard.models.task import TaskType

load_dotenv()


# Lifecycle
ARCHIVE_AFTER_DAYS = int(os.getenv("ARCHIVE_AFTER_DAYS", "7"))
ARCHIVE_AFTER = timedelta(days=ARCHIVE_AFTER_DAYS)

# Day-key polling interval (seconds)
DAY_KEY_POLL_SECONDS = float(os.getenv("DAY_KEY_POLL_SECONDS", "60"))

# Reminder scoring
REMINDER_LIMIT = 6
SCORE_OVERDUE = 60
SCORE_TODAY = 50
SCORE_UPCOMING = 35  # due in 1..3 days
SCORE_THIS_WEEK = 20  # due in 4..7 days
SCORE_MONITOR = 5
UPCOMING_DAYS = 3
THIS_WEEK_DAYS = 7

# (minimum amount, bonus) checked from largest to smallest
AMOUNT_BONUS_TIERS = (
    (1_000_000_000, 25),
    (300_000_000, 15),
    (100_000_000, 8),
)

# Financial fields each task type may carry
FINANCIAL_FIELDS = ("amount_disbursement", "service_fee", "amount_recovery", "amount_mobilized")
TYPE_FINANCIAL_FIELDS = {
    TaskType.DISBURSEMENT.value: ("amount_disbursement", "service_fee"),
    TaskType.COLLECTION.value: ("amount_recovery",),
    TaskType.FUNDRAISING.value: ("amount_mobilized",),
}

# Settings store keys
TARGETS_STORAGE_KEY = "credit_targets_v1"
MONTHLY_TARGETS_STORAGE_KEY = "credit_targets_monthly_v1"
OUTSTANDING_EXTRAS_STORAGE_KEY = "credit_outstanding_extras_v1"
OUTSTANDING_PREVIOUS_DAY_KEY = "credit_outstanding_prev_day_v1"

# Yearly targets
DEFAULT_TARGET_OUTSTANDING = 4_000_000_000
DEFAULT_TARGET_MOBILIZED = 2_500_000_000
DEFAULT_TARGET_SERVICE_FEE = 250_000_000
