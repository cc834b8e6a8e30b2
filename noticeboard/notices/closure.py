"""Closing a notice: archive its completions, delete it, then purge its files.

Order matters:

1. archive one ``NoticeArchiveStat`` per month holding Completed rows
2. collect the attachment and every reply reference
3. delete the notice (status rows cascade)
4. after the transaction commits, delete the collected files best-effort

Steps 1-3 share one transaction and are rolled back together on error.
Step 4 never fails the close; storage errors are only logged.
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from noticeboard.core.constants import AckStatus
from noticeboard.core.exceptions import NotFound, StateConflict
from noticeboard.core.policies import Identity, ensure_can_close
from noticeboard.db.models import Notice, NoticeArchiveStat, NoticeStatus
from noticeboard.db.repositories import NoticeStatusRepository
from noticeboard.notices.timing import Clock, month_key, utc_now
from noticeboard.storage.blob import BlobStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClosureResult:
    notice_id: int
    archived: dict[str, int] = field(default_factory=dict)
    file_refs: tuple[str, ...] = ()


class ClosureService:
    """Archive, delete and clean up a notice."""

    def __init__(self, db_session: Session, storage: BlobStorage, clock: Clock = utc_now) -> None:
        self.db = db_session
        self.storage = storage
        self.clock = clock
        self.statuses = NoticeStatusRepository(db_session)

    def close_notice(self, caller: Identity, notice_id: int) -> ClosureResult:
        """Run steps 1-3 and return what was archived and which files to purge.

        Flushes but does not commit; the caller commits and then hands
        ``file_refs`` to :meth:`purge_files`.
        """
        notice = self.db.get(Notice, notice_id)
        if notice is None:
            raise NotFound(f"Notice {notice_id} not found")
        ensure_can_close(caller, issuer_id=notice.created_by)

        rows = self.statuses.list_for_notice(notice_id)
        if not caller.is_admin:
            incomplete = sum(1 for row in rows if row.status != AckStatus.COMPLETED)
            if incomplete:
                raise StateConflict(
                    "Cannot close: not all recipients have completed this notice."
                )

        try:
            archived = self._archive_completions(notice_id)
            file_refs = self._collect_files(notice, rows)
            self.db.delete(notice)
            self.db.flush()
        except Exception:
            self.db.rollback()
            logger.exception("Closing notice %s failed; rolled back", notice_id)
            raise

        logger.info(
            "Notice closed: id=%s by=%s archived_months=%d files=%d",
            notice_id, caller.id, len(archived), len(file_refs),
        )
        return ClosureResult(notice_id=notice_id, archived=archived, file_refs=file_refs)

    def _archive_completions(self, notice_id: int) -> dict[str, int]:
        per_month = Counter(
            month_key(row.updated_at) for row in self.statuses.list_completed(notice_id)
        )
        closed_at = self.clock()
        for month, completed in sorted(per_month.items()):
            self.db.add(NoticeArchiveStat(month=month, completed=completed, closed_at=closed_at))
        self.db.flush()
        return dict(per_month)

    def _collect_files(self, notice: Notice, rows: list[NoticeStatus]) -> tuple[str, ...]:
        refs = [notice.attachment_path] + [row.reply_path for row in rows]
        return tuple(ref for ref in refs if ref)

    def purge_files(self, file_refs: tuple[str, ...] | list[str]) -> None:
        """Best-effort delete; never raises."""
        for ref in file_refs:
            try:
                self.storage.delete(ref)
            except Exception:
                logger.warning("Could not delete stored file %s; leaving it behind", ref, exc_info=True)

    def close_and_purge(self, caller: Identity, notice_id: int) -> ClosureResult:
        """Close, commit, then purge files in-line."""
        result = self.close_notice(caller, notice_id)
        self.db.commit()
        self.purge_files(result.file_refs)
        return result
