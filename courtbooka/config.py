"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

# ── Booking API ───────────────────────────────────────────────────────────

API_BASE_URL: str = os.getenv("API_BASE_URL", "https://api.courtbooka.rondras.com")
API_TIMEOUT: float = float(os.getenv("API_TIMEOUT", "10"))

# Bearer token forwarded as-is; obtaining it is the auth layer's job.
API_TOKEN: str = os.getenv("API_TOKEN", "")

# ── Display ───────────────────────────────────────────────────────────────

# Calendar days and slot grids are computed in this timezone.
DISPLAY_TIMEZONE: ZoneInfo = ZoneInfo(os.getenv("DISPLAY_TIMEZONE", "Europe/Berlin"))

# Height of one slot row in pixels (card height + spacing).
SLOT_ROW_HEIGHT: float = float(os.getenv("SLOT_ROW_HEIGHT", "88"))

# ── Preloading ────────────────────────────────────────────────────────────

# Wait after the active court resolves before preloading the others.
PRELOAD_DEBOUNCE_SECONDS: float = float(os.getenv("PRELOAD_DEBOUNCE_SECONDS", "0.5"))

# Gap between two background requests so the backend is not hit in a burst.
PRELOAD_STEP_DELAY_SECONDS: float = float(os.getenv("PRELOAD_STEP_DELAY_SECONDS", "0.1"))

# ── Scroll sync ───────────────────────────────────────────────────────────

# How long the driver keeps the scroll token after the user stops dragging.
SCROLL_RELEASE_SECONDS: float = float(os.getenv("SCROLL_RELEASE_SECONDS", "0.1"))

# Delay before the single retry of a failed scroll-to-index.
SCROLL_RETRY_SECONDS: float = float(os.getenv("SCROLL_RETRY_SECONDS", "0.1"))
