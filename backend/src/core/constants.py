"""Application constants and configuration values."""

from core.config import FRONTEND_URL

# Database field lengths
MAX_STRING_LENGTH = 255
MAX_APPOINTMENT_TYPE_LENGTH = 100

# Database connection settings
DB_POOL_RECYCLE_SECONDS = 300  # 5 minutes

# CORS origins for development and production
_CORS_ORIGINS_RAW = [
    "http://localhost:5173",      # React dev server (Vite) - localhost
    FRONTEND_URL,
]

# Filter out None values and empty strings to avoid CORS errors
CORS_ORIGINS = [origin for origin in _CORS_ORIGINS_RAW if origin and origin.strip()]

# Schedule settings defaults (used when a clinician has never saved settings)
TIME_GRANULARITY_HOUR = "hour"
TIME_GRANULARITY_HALF_HOUR = "half_hour"
TIME_GRANULARITY_MINUTES = {
    TIME_GRANULARITY_HOUR: 60,
    TIME_GRANULARITY_HALF_HOUR: 30,
}
DEFAULT_TIME_GRANULARITY = TIME_GRANULARITY_HOUR
DEFAULT_MIN_DAYS_AHEAD = 1
DEFAULT_MAX_DAYS_AHEAD = 90

# max_days_ahead is always at least min_days_ahead + this many days
MIN_BOOKING_WINDOW_SPAN_DAYS = 30

# Appointment statuses
APPOINTMENT_STATUS_SCHEDULED = "scheduled"

# Week view columns start on Sunday
WEEK_START_WEEKDAY = 6  # date.weekday(): 0=Monday ... 6=Sunday
DAYS_IN_WEEK = 7

# Row fetches pad the visible dates by this many days. Zone offsets span
# UTC-12 to UTC+14, so a display date maps to clinician dates at most two
# days away; the extra day matches the DST margin of clinician_dates_for_window.
ROW_FETCH_PADDING_DAYS = 3

# Day names indexed by date.weekday()
WEEKDAY_NAMES = ['Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday']

# Display names and abbreviations that clinicians have saved instead of IANA names
TIME_ZONE_ALIASES = {
    "Eastern Time (ET)": "America/New_York",
    "Central Time (CT)": "America/Chicago",
    "Mountain Time (MT)": "America/Denver",
    "Pacific Time (PT)": "America/Los_Angeles",
    "Alaska Time": "America/Anchorage",
    "Hawaii Time": "Pacific/Honolulu",
    "Arizona": "America/Phoenix",
    "EST": "America/New_York",
    "EDT": "America/New_York",
    "CST": "America/Chicago",
    "CDT": "America/Chicago",
    "MST": "America/Denver",
    "MDT": "America/Denver",
    "PST": "America/Los_Angeles",
    "PDT": "America/Los_Angeles",
}
