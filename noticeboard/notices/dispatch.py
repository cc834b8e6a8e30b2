"""Notice dispatch: create a notice and fan it out to its recipients.

Recipients are resolved from either the broadcast rule (every active
non-admin account except the issuer) or an explicit id list minus the
issuer.  The notice row and one Pending status row per recipient are
written in a single flush.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy.orm import Session

from noticeboard.core.constants import VALID_PRIORITIES, AckStatus
from noticeboard.core.exceptions import ValidationFailed
from noticeboard.core.policies import Identity, Role, ensure_can_issue
from noticeboard.db.models import Notice, NoticeStatus, User
from noticeboard.db.repositories import UserRepository
from noticeboard.notices.timing import parse_deadline
from noticeboard.storage.blob import BlobStorage, Upload, store_upload

logger = logging.getLogger(__name__)


def _unique_ids(values: Iterable[int]) -> list[int]:
    seen: set[int] = set()
    ordered: list[int] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


class NoticeDispatcher:
    """Validate, resolve recipients and persist new notices."""

    def __init__(self, db_session: Session, storage: BlobStorage) -> None:
        self.db = db_session
        self.storage = storage
        self.users = UserRepository(db_session)

    def resolve_recipients(
        self,
        issuer: Identity,
        *,
        broadcast: bool,
        recipient_ids: Iterable[int] | None,
    ) -> list[User]:
        if broadcast:
            recipients = self.users.list_broadcast_recipients(exclude_user_id=issuer.id)
            if not recipients:
                raise ValidationFailed("There are no eligible recipients for a broadcast.")
            return recipients

        try:
            ids = [int(rid) for rid in (recipient_ids or [])]
        except (TypeError, ValueError):
            raise ValidationFailed("Recipient ids must be integers.") from None
        if not ids:
            raise ValidationFailed('Specify recipients or select "All".')
        ids = [rid for rid in _unique_ids(ids) if rid != issuer.id]
        if not ids:
            raise ValidationFailed("At least one recipient other than yourself is required.")

        found = {user.id: user for user in self.users.get_many(ids)}
        missing = [rid for rid in ids if rid not in found]
        if missing:
            raise ValidationFailed(f"Unknown recipient ids: {missing}")
        ineligible = [
            rid for rid in ids
            if found[rid].role == Role.ADMIN.value or not found[rid].is_active
        ]
        if ineligible:
            raise ValidationFailed(f"Recipients must be active member accounts: {ineligible}")
        return [found[rid] for rid in ids]

    def create_notice(
        self,
        issuer: Identity,
        *,
        title: str,
        body: str,
        priority: str,
        deadline: str,
        broadcast: bool = False,
        recipient_ids: Iterable[int] | None = None,
        attachment: Upload | None = None,
    ) -> int:
        """Create the notice and its Pending status rows; return the notice id."""
        ensure_can_issue(issuer)

        title = (title or "").strip()
        body = (body or "").strip()
        if not title or not body or not priority or not deadline:
            raise ValidationFailed("title, body, priority, and deadline are required.")
        if priority not in VALID_PRIORITIES:
            raise ValidationFailed("priority must be High, Normal, or Low.")
        try:
            deadline_date = parse_deadline(deadline)
        except ValueError as exc:
            raise ValidationFailed(str(exc)) from None

        recipients = self.resolve_recipients(
            issuer, broadcast=broadcast, recipient_ids=recipient_ids
        )

        # Storage failures propagate before any row exists.
        stored = store_upload(self.storage, attachment)

        try:
            notice = Notice(
                title=title,
                body=body,
                priority=priority,
                deadline=deadline_date,
                created_by=issuer.id,
                broadcast=bool(broadcast),
                attachment_path=stored.reference if stored else None,
                attachment_name=stored.name if stored else None,
            )
            notice.statuses = [
                NoticeStatus(user_id=user.id, status=AckStatus.PENDING.value, is_read=False)
                for user in recipients
            ]
            self.db.add(notice)
            self.db.flush()
        except Exception:
            if stored is not None:
                self.storage.delete(stored.reference)
            raise

        logger.info(
            "Notice created: id=%s issuer=%s recipients=%d broadcast=%s",
            notice.id, issuer.id, len(recipients), bool(broadcast),
        )
        return notice.id
