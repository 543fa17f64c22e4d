import os
from decimal import Decimal

from dotenv import load_dotenv

load_dotenv()

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEBUG = LOG_LEVEL == "DEBUG"

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise ValueError("DATABASE_URL must be set in the environment")

SCHEMA = "hostel"

ALLOWED_ORIGINS: list[str] = [
    origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "*").split(",")
]

# Booking rules
BOOKING_FEE = Decimal(os.getenv("BOOKING_FEE", "70"))
PAYMENT_DUE_DAYS = int(os.getenv("PAYMENT_DUE_DAYS", "7"))
AUTO_CANCEL_GRACE_DAYS = int(os.getenv("AUTO_CANCEL_GRACE_DAYS", "7"))

# Deposit rules
DEPOSIT_EXPIRY_DAYS = int(os.getenv("DEPOSIT_EXPIRY_DAYS", "30"))
DEPOSIT_REFUND_WINDOW_DAYS = int(os.getenv("DEPOSIT_REFUND_WINDOW_DAYS", "30"))

# Row lock wait before a transaction gives up with LockTimeout
LOCK_TIMEOUT_MS = int(os.getenv("LOCK_TIMEOUT_MS", "5000"))
# Tries per sweep item while its row lock is contended
SWEEP_LOCK_ATTEMPTS = int(os.getenv("SWEEP_LOCK_ATTEMPTS", "3"))

OCCUPANCY_SYNC_INTERVAL_SECONDS = int(os.getenv("OCCUPANCY_SYNC_INTERVAL_SECONDS", "1800"))
SCHEDULER_POLL_SECONDS = float(os.getenv("SCHEDULER_POLL_SECONDS", "30"))
SCHEDULER_METRICS_PORT = int(os.getenv("SCHEDULER_METRICS_PORT", "9101"))

PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co/")
