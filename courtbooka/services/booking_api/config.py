"""
CourtBooka booking API configuration.

Endpoint templates and HTTP defaults for the hosted backend.
"""

from __future__ import annotations

# ── API endpoints ─────────────────────────────────────────────────────────
# Relative to API_BASE_URL.

CLUB_COURTS_PATH = "/bookings/clubs/{club_id}/courts"
COURT_BOOKINGS_PATH = "/bookings/courts/{court_id}/bookings"
CREATE_BOOKING_PATH = "/bookings/"
BOOKING_PATH = "/bookings/bookings/{booking_id}"

# ── HTTP defaults ─────────────────────────────────────────────────────────

DEFAULT_HEADERS: dict[str, str] = {
    "User-Agent": "CourtBooka/0.1",
    "Accept": "application/json",
    "Content-Type": "application/json",
}
