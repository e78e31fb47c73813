"""
Business constants shared across the FLEX API
Table names, record statuses and operational timings
"""

COMPANY = {
    "name": "FLEX",
    "phone": "+447366907286",
    "email": "hello@flexlaundry.co.uk",
    "support_email": "support@flexlaundry.co.uk",
    "website": "https://flexlaundry.co.uk",
}

# Airtable table names
TABLES = {
    "members": "Members",
    "drops": "Drops",
    "bags": "Bags",
    "gyms": "Gyms",
    "issues": "Issues",
    "plans": "Plans",
    "content": "Page Content",
    "sections": "Page Sections",
    "config": "Config",
    "faq": "FAQ",
    "discounts": "Discounts",
    "audit_log": "Audit Log",
    "gym_interest": "Gym Interest",
}

OPERATIONS = {
    "turnaround_hours": 48,
    "pickup_deadline_days": 7,
    "reengagement_days": 14,
    "pause_reminder_days": 3,
    "max_pause_days": 30,
}

# ============================================================================
# DROP STATUSES
# ============================================================================

DROP_DROPPED = "Dropped"
DROP_IN_TRANSIT = "In Transit"
DROP_AT_LAUNDRY = "At Laundry"
DROP_READY = "Ready"
DROP_COLLECTED = "Collected"

DROP_STATUSES = [DROP_DROPPED, DROP_IN_TRANSIT, DROP_AT_LAUNDRY, DROP_READY, DROP_COLLECTED]

# ============================================================================
# BAG STATUSES
# ============================================================================

BAG_AVAILABLE = "Available"
BAG_ISSUED = "Issued"
BAG_IN_USE = "In Use"
BAG_UNRETURNED = "Unreturned"
BAG_DAMAGED = "Damaged"

BAG_STATUSES = [BAG_AVAILABLE, BAG_ISSUED, BAG_IN_USE, BAG_UNRETURNED, BAG_DAMAGED]

# ============================================================================
# MEMBER STATUSES
# ============================================================================

MEMBER_PENDING = "Pending"
MEMBER_ACTIVE = "Active"
MEMBER_PAUSED = "Paused"
MEMBER_CANCELLED = "Cancelled"
MEMBER_PAST_DUE = "Past Due"

MEMBER_STATUSES = [MEMBER_PENDING, MEMBER_ACTIVE, MEMBER_PAUSED, MEMBER_CANCELLED, MEMBER_PAST_DUE]

# ============================================================================
# TICKETS
# ============================================================================

TICKET_OPEN = "Open"
TICKET_IN_PROGRESS = "In Progress"
TICKET_AWAITING_CUSTOMER = "Awaiting Customer"
TICKET_RESOLVED = "Resolved"
TICKET_CLOSED = "Closed"

TICKET_STATUSES = [
    TICKET_OPEN,
    TICKET_IN_PROGRESS,
    TICKET_AWAITING_CUSTOMER,
    TICKET_RESOLVED,
    TICKET_CLOSED,
]

TICKET_PRIORITIES = ["Low", "Medium", "High", "Urgent"]

ISSUE_TYPES = [
    "Missing Item",
    "Damage",
    "Quality Issue",
    "Delay",
    "Late Delivery",
    "Missing Bag",
    "Support Request",
    "Other",
]
