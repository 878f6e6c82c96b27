import os

from dotenv import load_dotenv

load_dotenv()

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./trackcore.db")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# CORS settings
CORS_ALLOW_ORIGINS = os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")

# Timeline zoom (fraction taken off / added to each end of the window)
ZOOM_FRACTION = float(os.getenv("ZOOM_FRACTION", "0.2"))
ZOOM_MIN_SPAN_DAYS = int(os.getenv("ZOOM_MIN_SPAN_DAYS", "7"))
ZOOM_MAX_SPAN_DAYS = int(os.getenv("ZOOM_MAX_SPAN_DAYS", "730"))

# Default chart window around today
DEFAULT_WINDOW_PAST_DAYS = int(os.getenv("DEFAULT_WINDOW_PAST_DAYS", "7"))
DEFAULT_WINDOW_FUTURE_DAYS = int(os.getenv("DEFAULT_WINDOW_FUTURE_DAYS", "30"))

# Duration used for tasks without an estimate
DEFAULT_TASK_DURATION_DAYS = float(os.getenv("DEFAULT_TASK_DURATION_DAYS", "1.0"))
