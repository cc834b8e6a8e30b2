"""Fixed vocabularies for notices and acknowledgement statuses."""
from __future__ import annotations

from enum import StrEnum


class Priority(StrEnum):
    HIGH = "High"
    NORMAL = "Normal"
    LOW = "Low"


class AckStatus(StrEnum):
    PENDING = "Pending"
    NOTED = "Noted"
    COMPLETED = "Completed"


VALID_PRIORITIES: frozenset[str] = frozenset(p.value for p in Priority)
VALID_STATUSES: frozenset[str] = frozenset(s.value for s in AckStatus)

# Statuses a recipient may submit; Pending is only ever the creation default.
RESPONSE_STATUSES: frozenset[str] = frozenset({AckStatus.NOTED, AckStatus.COMPLETED})

# Inbox ordering: outstanding work first.
STATUS_RANK: dict[str, int] = {
    AckStatus.PENDING: 0,
    AckStatus.NOTED: 1,
    AckStatus.COMPLETED: 2,
}

# Single recipient entry shown for broadcast notices in outbox/admin views.
BROADCAST_LABEL = "All Recipients"

DEADLINE_FORMAT = "%Y-%m-%d"
MONTH_FORMAT = "%Y-%m"

# Attachment and reply uploads are limited to documents and images.
ALLOWED_UPLOAD_TYPES: frozenset[str] = frozenset(
    {"application/pdf", "image/jpeg", "image/png", "image/webp"}
)
