"""Alert state machine and reputation policy constants."""

from __future__ import annotations

# Alert status
PENDING = "pending"
ACTIVE = "active"
RESPONDING = "responding"
RESOLVED = "resolved"
CANCELLED = "cancelled"
EXPIRED = "expired"

# Owner can still cancel, resolve or move the alert
LIVE_STATUSES = (ACTIVE, RESPONDING)
# Swept into EXPIRED once stale
STALE_STATUSES = (PENDING, ACTIVE, RESPONDING)
TERMINAL_STATUSES = (RESOLVED, CANCELLED, EXPIRED)

# Notified volunteer entry status
NOTIFIED = "notified"
ACCEPTED = "accepted"
DECLINED = "declined"
NO_RESPONSE = "no_response"

# Contact delivery outcome
SENT = "sent"
DELIVERED = "delivered"
FAILED = "failed"

# Volunteer operational status
VOLUNTEER_PENDING = "pending"
VOLUNTEER_ACTIVE = "active"
VOLUNTEER_INACTIVE = "inactive"
VOLUNTEER_SUSPENDED = "suspended"

# Emergency contacts
MAX_ACTIVE_CONTACTS = 5

# Feedback / resolution rating bounds
MIN_RATING = 1
MAX_RATING = 5

# Badges: (name, icon, minimum successful assists)
ASSIST_BADGES = (
    ("10 Assists", "⭐", 10),
    ("25 Assists", "🌟", 25),
    ("50 Assists", "🏆", 50),
    ("100 Assists", "💎", 100),
)
FIRST_RESPONDER_BADGE = ("First Responder", "🏅")
QUICK_RESPONDER_BADGE = ("Quick Responder", "⚡")
QUICK_RESPONDER_MAX_AVG_SECONDS = 180
QUICK_RESPONDER_MIN_RESPONSES = 5
