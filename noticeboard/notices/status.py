"""Per-recipient acknowledgement state machine.

    Pending → Noted → Completed
            ↘ Completed

Noted may be re-submitted (to update the remark); Completed is terminal.
Pending is only ever the creation default and cannot be requested.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from noticeboard.core.constants import RESPONSE_STATUSES, AckStatus
from noticeboard.core.exceptions import Forbidden, NotFound, StateConflict, ValidationFailed
from noticeboard.core.policies import Identity, ensure_can_respond
from noticeboard.db.models import Notice, NoticeStatus
from noticeboard.db.repositories import NoticeStatusRepository
from noticeboard.notices.timing import Clock, utc_now
from noticeboard.storage.blob import BlobStorage, Upload, store_upload

logger = logging.getLogger(__name__)

# Allowed transitions: current_status → {valid target statuses}
_TRANSITIONS: dict[str, set[str]] = {
    AckStatus.PENDING: {AckStatus.NOTED, AckStatus.COMPLETED},
    AckStatus.NOTED: {AckStatus.NOTED, AckStatus.COMPLETED},
    AckStatus.COMPLETED: set(),
}


class StatusTracker:
    """Apply recipient responses to their own status rows."""

    def __init__(self, db_session: Session, storage: BlobStorage, clock: Clock = utc_now) -> None:
        self.db = db_session
        self.storage = storage
        self.clock = clock
        self.statuses = NoticeStatusRepository(db_session)

    def can_transition(self, current_status: str, to_status: str) -> bool:
        """Return whether *current_status* → *to_status* is allowed."""
        return to_status in _TRANSITIONS.get(current_status, set())

    def _check_request(self, status: str, remark: str | None) -> str:
        if status == AckStatus.PENDING:
            raise StateConflict("Pending cannot be set by a response; it is the initial state.")
        if status not in RESPONSE_STATUSES:
            raise ValidationFailed("status must be Noted or Completed.")
        remark = (remark or "").strip()
        if not remark:
            raise ValidationFailed("Remark is required.")
        return remark

    def _load_row(self, notice_id: int, recipient: Identity) -> NoticeStatus:
        if self.db.get(Notice, notice_id) is None:
            raise NotFound(f"Notice {notice_id} not found")
        row = self.statuses.get_for_recipient(notice_id, recipient.id)
        if row is None:
            raise Forbidden("This notice is not addressed to you.")
        return row

    def update_status(
        self,
        recipient: Identity,
        notice_id: int,
        status: str,
        remark: str | None,
        reply: Upload | None = None,
    ) -> NoticeStatus:
        """Move the caller's row for *notice_id* to *status*."""
        ensure_can_respond(recipient)
        remark = self._check_request(status, remark)

        row = self._load_row(notice_id, recipient)
        if row.status == AckStatus.COMPLETED:
            raise StateConflict("This notice has already been marked as completed.")

        if not self.can_transition(row.status, status):
            raise StateConflict(
                f"Invalid transition {row.status!r} → {status!r}"
            )

        previous_reply = row.reply_path
        stored = store_upload(self.storage, reply)

        values = {
            "status": AckStatus(status).value,
            "remark": remark,
            "is_read": True,
            "updated_at": self.clock(),
        }
        if stored is not None:
            values["reply_path"] = stored.reference
            values["reply_name"] = stored.name

        # Guarded on status != Completed so a concurrent completion wins.
        try:
            changed = self.statuses.apply_response(notice_id, recipient.id, **values)
        except Exception:
            if stored is not None:
                self.storage.delete(stored.reference)
            raise
        if changed == 0:
            if stored is not None:
                self.storage.delete(stored.reference)
            raise StateConflict("This notice has already been marked as completed.")

        if stored is not None and previous_reply and previous_reply != stored.reference:
            self._discard_reply(previous_reply)

        logger.info(
            "Notice status updated: notice=%s recipient=%s status=%s",
            notice_id, recipient.id, row.status,
        )
        return row

    def _discard_reply(self, reference: str) -> None:
        try:
            self.storage.delete(reference)
        except Exception:
            logger.warning(
                "Could not delete superseded reply %s; leaving it behind", reference, exc_info=True
            )
