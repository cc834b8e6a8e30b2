"""Tests for noticeboard/notices/projections.py — inbox, outbox, detail and admin views.

The clock is pinned to 2026-03-15 so overdue flags and lateness are stable.
"""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from conftest import add_user, identity_of
from noticeboard.core.exceptions import Forbidden, NotFound
from noticeboard.db.models import NoticeArchiveStat
from noticeboard.db.repositories import NoticeStatusRepository
from noticeboard.notices.dispatch import NoticeDispatcher
from noticeboard.notices.projections import ProjectionEngine
from noticeboard.notices.status import StatusTracker


@pytest.fixture()
def engine_view(db_session, clock) -> ProjectionEngine:
    return ProjectionEngine(db_session, clock=clock)


@pytest.fixture()
def tracker(db_session, storage, clock) -> StatusTracker:
    return StatusTracker(db_session, storage, clock=clock)


@pytest.fixture()
def make_notice(db_session, storage):
    dispatcher = NoticeDispatcher(db_session, storage)

    def _make(issuer, recipients=(), deadline="2026-03-25", title="Circular", **kwargs) -> int:
        return dispatcher.create_notice(
            issuer,
            title=title,
            body=f"{title} body",
            priority=kwargs.pop("priority", "Normal"),
            deadline=deadline,
            recipient_ids=[r.id for r in recipients],
            **kwargs,
        )

    return _make


def _tracker_at(db_session, storage, moment: datetime) -> StatusTracker:
    return StatusTracker(db_session, storage, clock=lambda: moment)


# ===========================================================================
# Inbox
# ===========================================================================

class TestInbox:
    def test_ordered_by_status_then_deadline(self, engine_view, tracker, make_notice, people):
        later = make_notice(people.alice, [people.bob], deadline="2026-03-25", title="later")
        overdue = make_notice(people.alice, [people.bob], deadline="2026-03-10", title="overdue")
        noted = make_notice(people.carol, [people.bob], deadline="2026-03-01", title="noted")
        done = make_notice(people.carol, [people.bob], deadline="2026-02-01", title="done")
        tracker.update_status(people.bob, noted, "Noted", "on it")
        tracker.update_status(people.bob, done, "Completed", "finished")

        rows = engine_view.inbox(people.bob)

        assert [r.notice_id for r in rows] == [overdue, later, noted, done]
        assert [r.status for r in rows] == ["Pending", "Pending", "Noted", "Completed"]

    def test_overdue_and_days_lapsed(self, engine_view, tracker, make_notice, people):
        past = make_notice(people.alice, [people.bob], deadline="2026-03-10")
        future = make_notice(people.alice, [people.bob], deadline="2026-03-25")
        finished = make_notice(people.alice, [people.bob], deadline="2026-03-01")
        tracker.update_status(people.bob, finished, "Completed", "done")

        by_id = {r.notice_id: r for r in engine_view.inbox(people.bob)}

        assert by_id[past].is_overdue is True
        assert by_id[past].days_lapsed == 5
        assert by_id[future].is_overdue is False
        assert by_id[future].days_lapsed == 0
        assert by_id[finished].is_overdue is False

    def test_carries_issuer_and_own_status(self, engine_view, make_notice, people):
        make_notice(people.alice, [people.bob])
        row = engine_view.inbox(people.bob)[0]
        assert row.issuer_username == "alice"
        assert row.issuer_department == "Health"
        assert row.is_read is False
        assert row.remark is None

    def test_only_own_notices(self, engine_view, make_notice, people):
        make_notice(people.alice, [people.bob])
        assert engine_view.inbox(people.carol) == []

    def test_admin_has_no_inbox(self, engine_view, make_notice, people):
        make_notice(people.alice, [people.bob], broadcast=True)
        assert engine_view.inbox(people.admin) == []


# ===========================================================================
# Outbox
# ===========================================================================

class TestOutbox:
    def test_counts_per_status(self, engine_view, tracker, make_notice, db_session, people):
        dave = identity_of(add_user(db_session, "dave", department=people.revenue))
        notice_id = make_notice(people.alice, [people.bob, people.carol, dave], deadline="2026-03-10")
        tracker.update_status(people.bob, notice_id, "Noted", "seen")
        tracker.update_status(people.carol, notice_id, "Completed", "done")

        row = engine_view.outbox(people.alice)[0]

        assert (row.pending_count, row.noted_count, row.completed_count) == (1, 1, 1)
        assert row.total_recipients == 3
        assert row.is_overdue is True
        assert [r.name for r in row.recipients] == ["bob", "carol", "dave"]
        assert row.recipients[1].status == "Completed"
        assert row.recipients[0].department == "Revenue"

    def test_not_overdue_once_nobody_is_pending(self, engine_view, tracker, make_notice, people):
        notice_id = make_notice(people.alice, [people.bob], deadline="2026-03-10")
        tracker.update_status(people.bob, notice_id, "Noted", "seen")
        assert engine_view.outbox(people.alice)[0].is_overdue is False

    def test_broadcast_shows_single_label(self, engine_view, make_notice, people):
        make_notice(people.alice, broadcast=True)
        row = engine_view.outbox(people.alice)[0]
        assert row.broadcast is True
        assert len(row.recipients) == 1
        assert row.recipients[0].name == "All Recipients"
        assert row.total_recipients == 2

    def test_newest_first_and_only_own(self, engine_view, make_notice, people):
        first = make_notice(people.alice, [people.bob], title="first")
        second = make_notice(people.alice, [people.carol], title="second")
        make_notice(people.bob, [people.carol], title="someone else's")

        assert [r.notice_id for r in engine_view.outbox(people.alice)] == [second, first]

    def test_admin_has_no_outbox(self, engine_view, people):
        assert engine_view.outbox(people.admin) == []


# ===========================================================================
# Notice detail
# ===========================================================================

class TestNoticeDetail:
    def test_recipient_fetch_marks_own_row_read(self, engine_view, make_notice, db_session, people):
        notice_id = make_notice(people.alice, [people.bob, people.carol])

        detail = engine_view.notice_detail(people.bob, notice_id)

        by_user = {s.username: s for s in detail.statuses}
        assert by_user["bob"].is_read is True
        assert by_user["carol"].is_read is False
        assert NoticeStatusRepository(db_session).get_for_recipient(notice_id, people.bob.id).is_read is True

    def test_repeat_fetch_is_a_no_op(self, engine_view, make_notice, db_session, people):
        notice_id = make_notice(people.alice, [people.bob])
        statuses = NoticeStatusRepository(db_session)

        engine_view.notice_detail(people.bob, notice_id)
        assert statuses.mark_read(notice_id, people.bob.id) == 0
        second = engine_view.notice_detail(people.bob, notice_id)

        assert second.statuses[0].is_read is True
        assert second.statuses[0].status == "Pending"

    def test_issuer_and_admin_do_not_mark_read(self, engine_view, make_notice, people):
        notice_id = make_notice(people.alice, [people.bob])

        engine_view.notice_detail(people.alice, notice_id)
        detail = engine_view.notice_detail(people.admin, notice_id)

        assert detail.statuses[0].is_read is False
        assert detail.issuer_username == "alice"

    def test_unrelated_member_is_refused(self, engine_view, make_notice, people):
        notice_id = make_notice(people.alice, [people.bob])
        with pytest.raises(Forbidden):
            engine_view.notice_detail(people.carol, notice_id)

    def test_missing_notice(self, engine_view, people):
        with pytest.raises(NotFound):
            engine_view.notice_detail(people.admin, 999)


# ===========================================================================
# Admin views
# ===========================================================================

class TestAdminViews:
    def test_all_notices_lists_every_issuer(self, engine_view, make_notice, people):
        make_notice(people.alice, [people.bob], title="from alice")
        make_notice(people.bob, [people.carol], title="from bob")

        rows = engine_view.all_notices(people.admin)

        assert [r.issuer_username for r in rows] == ["bob", "alice"]
        assert rows[0].body == "from bob body"
        assert rows[1].issuer_department == "Health"

    def test_summary_counts(self, engine_view, tracker, make_notice, people):
        overdue = make_notice(people.alice, [people.bob, people.carol], deadline="2026-03-01")
        make_notice(people.alice, [people.bob], deadline="2026-04-01")
        tracker.update_status(people.bob, overdue, "Completed", "done")

        summary = engine_view.summary(people.admin)

        assert summary.total == 2
        assert summary.pending == 2
        assert summary.overdue == 1

    def test_member_cannot_use_admin_views(self, engine_view, people):
        for view in (engine_view.all_notices, engine_view.summary, engine_view.monthly_stats, engine_view.delay_report):
            with pytest.raises(Forbidden):
                view(people.alice)


# ===========================================================================
# Monthly stats
# ===========================================================================

class TestMonthlyStats:
    def test_live_completions_grouped_by_month(self, engine_view, make_notice, db_session, storage, people):
        notice_id = make_notice(people.alice, [people.bob, people.carol])
        feb = _tracker_at(db_session, storage, datetime(2026, 2, 27, 12, 0, tzinfo=timezone.utc))
        mar = _tracker_at(db_session, storage, datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc))
        feb.update_status(people.bob, notice_id, "Completed", "done")
        mar.update_status(people.carol, notice_id, "Completed", "done")

        stats = engine_view.monthly_stats(people.admin)

        assert [(s.month, s.completed) for s in stats] == [("2026-02", 1), ("2026-03", 1)]

    def test_noted_rows_do_not_count(self, engine_view, tracker, make_notice, people):
        notice_id = make_notice(people.alice, [people.bob])
        tracker.update_status(people.bob, notice_id, "Noted", "seen")
        assert engine_view.monthly_stats(people.admin) == []

    def test_archived_counts_are_merged(self, engine_view, tracker, make_notice, db_session, people):
        notice_id = make_notice(people.alice, [people.bob])
        tracker.update_status(people.bob, notice_id, "Completed", "done")
        db_session.add_all(
            [
                NoticeArchiveStat(month="2026-03", completed=2, closed_at=datetime(2026, 3, 5, tzinfo=timezone.utc)),
                NoticeArchiveStat(month="2025-12", completed=4, closed_at=datetime(2026, 1, 2, tzinfo=timezone.utc)),
            ]
        )
        db_session.flush()

        stats = engine_view.monthly_stats(people.admin)

        assert [(s.month, s.completed) for s in stats] == [("2025-12", 4), ("2026-03", 3)]


# ===========================================================================
# Delay report
# ===========================================================================

class TestDelayReport:
    def test_late_completion_is_counted(self, engine_view, tracker, make_notice, people):
        notice_id = make_notice(people.alice, [people.bob], deadline="2025-01-01")
        tracker.update_status(people.bob, notice_id, "Completed", "sorry, late")

        report = engine_view.delay_report(people.admin)

        assert len(report) == 1
        row = report[0]
        assert row.username == "bob"
        assert row.department == "Revenue"
        assert row.total_responded == 1
        assert row.delayed_count == 1
        assert row.total_days_delayed == 438

    def test_on_time_responses_are_not_delayed(self, engine_view, tracker, make_notice, people):
        notice_id = make_notice(people.alice, [people.carol], deadline="2026-03-15")
        tracker.update_status(people.carol, notice_id, "Noted", "same day")

        row = engine_view.delay_report(people.admin)[0]

        assert row.total_responded == 1
        assert row.delayed_count == 0
        assert row.total_days_delayed == 0

    def test_most_delayed_first_and_pending_ignored(self, engine_view, tracker, make_notice, people):
        slightly = make_notice(people.alice, [people.carol], deadline="2026-03-13")
        very = make_notice(people.alice, [people.bob], deadline="2026-02-13")
        make_notice(people.bob, [people.alice], deadline="2026-01-01")
        tracker.update_status(people.carol, slightly, "Completed", "done")
        tracker.update_status(people.bob, very, "Completed", "done")

        report = engine_view.delay_report(people.admin)

        assert [(r.username, r.total_days_delayed) for r in report] == [("bob", 30), ("carol", 2)]
