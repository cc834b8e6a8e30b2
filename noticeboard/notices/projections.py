"""Read views over notices, status rows and the directory.

Every view is a frozen dataclass so the shape of each projection is explicit.
``is_overdue`` and ``days_lapsed`` are derived on read from the injected
clock and never stored.

Ordering rules:
- inbox: status rank (Pending, Noted, Completed), then deadline ascending
- outbox / admin list: newest notice first
- monthly stats: month ascending
- delay report: total days delayed descending
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime

from sqlalchemy.orm import Session

from noticeboard.core.constants import BROADCAST_LABEL, STATUS_RANK, AckStatus
from noticeboard.core.exceptions import NotFound
from noticeboard.core.policies import Identity, ensure_admin, ensure_can_view
from noticeboard.db.models import Notice, NoticeStatus, User
from noticeboard.db.repositories import (
    NoticeArchiveStatRepository,
    NoticeRepository,
    NoticeStatusRepository,
)
from noticeboard.notices.timing import Clock, days_lapsed, days_late, is_overdue, month_key, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecipientStatus:
    name: str
    user_id: int | None = None
    department: str | None = None
    status: str | None = None
    is_read: bool | None = None


@dataclass(frozen=True, slots=True)
class InboxRow:
    notice_id: int
    title: str
    body: str
    priority: str
    deadline: date
    created_at: datetime
    broadcast: bool
    attachment_path: str | None
    attachment_name: str | None
    issuer_id: int
    issuer_username: str
    issuer_department: str | None
    status: str
    remark: str | None
    reply_path: str | None
    reply_name: str | None
    is_read: bool
    updated_at: datetime | None
    is_overdue: bool
    days_lapsed: int


@dataclass(frozen=True, slots=True)
class OutboxRow:
    notice_id: int
    title: str
    priority: str
    deadline: date
    created_at: datetime
    broadcast: bool
    attachment_path: str | None
    attachment_name: str | None
    pending_count: int
    noted_count: int
    completed_count: int
    total_recipients: int
    recipients: tuple[RecipientStatus, ...]
    is_overdue: bool
    days_lapsed: int


@dataclass(frozen=True, slots=True)
class AdminNoticeRow(OutboxRow):
    body: str
    issuer_id: int
    issuer_username: str
    issuer_department: str | None


@dataclass(frozen=True, slots=True)
class StatusDetail:
    user_id: int
    username: str
    department: str | None
    status: str
    remark: str | None
    reply_path: str | None
    reply_name: str | None
    is_read: bool
    updated_at: datetime | None
    is_overdue: bool
    days_lapsed: int


@dataclass(frozen=True, slots=True)
class NoticeDetail:
    notice_id: int
    title: str
    body: str
    priority: str
    deadline: date
    created_at: datetime
    broadcast: bool
    attachment_path: str | None
    attachment_name: str | None
    issuer_id: int
    issuer_username: str
    issuer_department: str | None
    statuses: tuple[StatusDetail, ...] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class AdminSummary:
    total: int
    pending: int
    overdue: int


@dataclass(frozen=True, slots=True)
class MonthlyStat:
    month: str
    completed: int


@dataclass(frozen=True, slots=True)
class DelayReportRow:
    user_id: int
    username: str
    department: str | None
    total_responded: int
    delayed_count: int
    total_days_delayed: int


def _department_label(user: User | None) -> str | None:
    if user is None or user.department is None:
        return None
    return user.department.name


class ProjectionEngine:
    """Build inbox, outbox, admin and detail views."""

    def __init__(self, db_session: Session, clock: Clock = utc_now) -> None:
        self.db = db_session
        self.clock = clock
        self.notices = NoticeRepository(db_session)
        self.statuses = NoticeStatusRepository(db_session)
        self.archive = NoticeArchiveStatRepository(db_session)

    def _today(self) -> date:
        return self.clock().date()

    # -- per-notice annotation ------------------------------------------------

    def _outbox_fields(self, notice: Notice, today: date) -> dict:
        counts = Counter(row.status for row in notice.statuses)
        if notice.broadcast:
            recipients: tuple[RecipientStatus, ...] = (RecipientStatus(name=BROADCAST_LABEL),)
        else:
            recipients = tuple(
                RecipientStatus(
                    name=row.user.username,
                    user_id=row.user_id,
                    department=_department_label(row.user),
                    status=row.status,
                    is_read=row.is_read,
                )
                for row in notice.statuses
            )
        pending = counts.get(AckStatus.PENDING.value, 0)
        return {
            "notice_id": notice.id,
            "title": notice.title,
            "priority": notice.priority,
            "deadline": notice.deadline,
            "created_at": notice.created_at,
            "broadcast": notice.broadcast,
            "attachment_path": notice.attachment_path,
            "attachment_name": notice.attachment_name,
            "pending_count": pending,
            "noted_count": counts.get(AckStatus.NOTED.value, 0),
            "completed_count": counts.get(AckStatus.COMPLETED.value, 0),
            "total_recipients": len(notice.statuses),
            "recipients": recipients,
            "is_overdue": notice.deadline < today and pending > 0,
            "days_lapsed": days_lapsed(notice.deadline, today),
        }

    # -- recipient / issuer views ---------------------------------------------

    def inbox(self, recipient: Identity) -> list[InboxRow]:
        if recipient.is_admin:
            return []
        today = self._today()
        rows = self.statuses.list_for_recipient(recipient.id)
        rows.sort(key=lambda r: (STATUS_RANK.get(r.status, len(STATUS_RANK)), r.notice.deadline, r.notice_id))
        return [self._inbox_row(row, today) for row in rows]

    def _inbox_row(self, row: NoticeStatus, today: date) -> InboxRow:
        notice = row.notice
        return InboxRow(
            notice_id=notice.id,
            title=notice.title,
            body=notice.body,
            priority=notice.priority,
            deadline=notice.deadline,
            created_at=notice.created_at,
            broadcast=notice.broadcast,
            attachment_path=notice.attachment_path,
            attachment_name=notice.attachment_name,
            issuer_id=notice.created_by,
            issuer_username=notice.creator.username,
            issuer_department=_department_label(notice.creator),
            status=row.status,
            remark=row.remark,
            reply_path=row.reply_path,
            reply_name=row.reply_name,
            is_read=row.is_read,
            updated_at=row.updated_at,
            is_overdue=is_overdue(notice.deadline, row.status, today),
            days_lapsed=days_lapsed(notice.deadline, today),
        )

    def outbox(self, issuer: Identity) -> list[OutboxRow]:
        if issuer.is_admin:
            return []
        today = self._today()
        return [
            OutboxRow(**self._outbox_fields(notice, today))
            for notice in self.notices.list_newest_first(created_by=issuer.id)
        ]

    def notice_detail(self, requester: Identity, notice_id: int) -> NoticeDetail:
        """Return the notice with every status row.

        A non-admin recipient's own row is marked read on the way; repeat
        fetches leave it untouched.
        """
        notice = self.notices.get_with_statuses(notice_id)
        if notice is None:
            raise NotFound(f"Notice {notice_id} not found")
        recipient_ids = {row.user_id for row in notice.statuses}
        ensure_can_view(requester, issuer_id=notice.created_by, recipient_ids=recipient_ids)

        if not requester.is_admin and requester.id in recipient_ids:
            if self.statuses.mark_read(notice_id, requester.id):
                logger.info("Notice %s marked read by %s", notice_id, requester.id)

        today = self._today()
        return NoticeDetail(
            notice_id=notice.id,
            title=notice.title,
            body=notice.body,
            priority=notice.priority,
            deadline=notice.deadline,
            created_at=notice.created_at,
            broadcast=notice.broadcast,
            attachment_path=notice.attachment_path,
            attachment_name=notice.attachment_name,
            issuer_id=notice.created_by,
            issuer_username=notice.creator.username,
            issuer_department=_department_label(notice.creator),
            statuses=tuple(
                StatusDetail(
                    user_id=row.user_id,
                    username=row.user.username,
                    department=_department_label(row.user),
                    status=row.status,
                    remark=row.remark,
                    reply_path=row.reply_path,
                    reply_name=row.reply_name,
                    is_read=row.is_read,
                    updated_at=row.updated_at,
                    is_overdue=is_overdue(notice.deadline, row.status, today),
                    days_lapsed=days_lapsed(notice.deadline, today),
                )
                for row in notice.statuses
            ),
        )

    # -- admin views ----------------------------------------------------------

    def all_notices(self, admin: Identity) -> list[AdminNoticeRow]:
        ensure_admin(admin)
        today = self._today()
        return [
            AdminNoticeRow(
                **self._outbox_fields(notice, today),
                body=notice.body,
                issuer_id=notice.created_by,
                issuer_username=notice.creator.username,
                issuer_department=_department_label(notice.creator),
            )
            for notice in self.notices.list_newest_first()
        ]

    def summary(self, admin: Identity) -> AdminSummary:
        ensure_admin(admin)
        return AdminSummary(
            total=self.notices.count(),
            pending=self.statuses.count_pending(),
            overdue=self.statuses.count_overdue_notices(self._today()),
        )

    def monthly_stats(self, admin: Identity) -> list[MonthlyStat]:
        """Live completions by month of ``updated_at`` merged with archived counts."""
        ensure_admin(admin)
        totals: Counter[str] = Counter(
            month_key(row.updated_at) for row in self.statuses.list_completed()
        )
        totals.update(self.archive.month_totals())
        return [MonthlyStat(month=month, completed=totals[month]) for month in sorted(totals)]

    def delay_report(self, admin: Identity) -> list[DelayReportRow]:
        """Per responding recipient: responses, late responses and days late."""
        ensure_admin(admin)
        buckets: dict[int, dict] = {}
        for row in self.statuses.list_responded():
            bucket = buckets.setdefault(
                row.user_id,
                {
                    "user_id": row.user_id,
                    "username": row.user.username,
                    "department": _department_label(row.user),
                    "total_responded": 0,
                    "delayed_count": 0,
                    "total_days_delayed": 0,
                },
            )
            late = days_late(row.notice.deadline, row.updated_at)
            bucket["total_responded"] += 1
            if late > 0:
                bucket["delayed_count"] += 1
                bucket["total_days_delayed"] += late
        report = [DelayReportRow(**bucket) for bucket in buckets.values()]
        report.sort(key=lambda r: (-r.total_days_delayed, r.username))
        return report
