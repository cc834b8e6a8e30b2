"""Tests for noticeboard/notices/status.py — recipient acknowledgement workflow."""
from __future__ import annotations

import pytest
from sqlalchemy import update

from conftest import FIXED_NOW
from noticeboard.core.exceptions import Forbidden, NotFound, StateConflict, StorageFailure, ValidationFailed
from noticeboard.db.models import NoticeStatus
from noticeboard.db.repositories import NoticeStatusRepository
from noticeboard.notices.dispatch import NoticeDispatcher
from noticeboard.notices.status import StatusTracker
from noticeboard.storage.blob import Upload


@pytest.fixture()
def tracker(db_session, storage, clock) -> StatusTracker:
    return StatusTracker(db_session, storage, clock=clock)


@pytest.fixture()
def notice_id(db_session, storage, people) -> int:
    return NoticeDispatcher(db_session, storage).create_notice(
        people.alice,
        title="Budget circular",
        body="Send the revised budget estimates.",
        priority="Normal",
        deadline="2026-03-20",
        recipient_ids=[people.bob.id, people.carol.id],
    )


def _row(db_session, notice_id, user_id):
    return NoticeStatusRepository(db_session).get_for_recipient(notice_id, user_id)


# ===========================================================================
# can_transition
# ===========================================================================

class TestCanTransition:
    def setup_method(self):
        self.tracker = StatusTracker.__new__(StatusTracker)

    def test_pending_to_noted(self):
        assert self.tracker.can_transition("Pending", "Noted") is True

    def test_pending_to_completed(self):
        assert self.tracker.can_transition("Pending", "Completed") is True

    def test_noted_to_noted(self):
        assert self.tracker.can_transition("Noted", "Noted") is True

    def test_noted_to_completed(self):
        assert self.tracker.can_transition("Noted", "Completed") is True

    def test_noted_back_to_pending(self):
        assert self.tracker.can_transition("Noted", "Pending") is False

    def test_completed_is_terminal(self):
        for target in ("Pending", "Noted", "Completed"):
            assert self.tracker.can_transition("Completed", target) is False

    def test_unknown_state(self):
        assert self.tracker.can_transition("Archived", "Noted") is False


# ===========================================================================
# update_status
# ===========================================================================

class TestUpdateStatus:
    def test_note_records_remark_and_timestamp(self, tracker, db_session, people, notice_id):
        row = tracker.update_status(people.bob, notice_id, "Noted", "  Looking into it ")

        assert row.status == "Noted"
        assert row.remark == "Looking into it"
        assert row.is_read is True
        assert row.updated_at == FIXED_NOW

    def test_only_callers_row_changes(self, tracker, db_session, people, notice_id):
        tracker.update_status(people.bob, notice_id, "Completed", "Done")
        other = _row(db_session, notice_id, people.carol.id)
        assert other.status == "Pending"
        assert other.updated_at is None

    def test_pending_to_completed_directly(self, tracker, people, notice_id):
        assert tracker.update_status(people.bob, notice_id, "Completed", "Done").status == "Completed"

    def test_noted_can_be_resubmitted(self, tracker, people, notice_id):
        tracker.update_status(people.bob, notice_id, "Noted", "First look")
        row = tracker.update_status(people.bob, notice_id, "Noted", "Still working")
        assert row.status == "Noted"
        assert row.remark == "Still working"

    def test_noted_then_completed(self, tracker, people, notice_id):
        tracker.update_status(people.bob, notice_id, "Noted", "First look")
        assert tracker.update_status(people.bob, notice_id, "Completed", "Done").status == "Completed"

    def test_completed_is_final(self, tracker, db_session, people, notice_id):
        tracker.update_status(people.bob, notice_id, "Completed", "Done")
        with pytest.raises(StateConflict, match="already been marked as completed"):
            tracker.update_status(people.bob, notice_id, "Noted", "Second thoughts")
        row = _row(db_session, notice_id, people.bob.id)
        assert row.status == "Completed"
        assert row.remark == "Done"

    def test_pending_cannot_be_requested(self, tracker, people, notice_id):
        with pytest.raises(StateConflict, match="initial state"):
            tracker.update_status(people.bob, notice_id, "Pending", "Reset")

    def test_unknown_status_is_invalid_input(self, tracker, people, notice_id):
        with pytest.raises(ValidationFailed, match="Noted or Completed"):
            tracker.update_status(people.bob, notice_id, "Archived", "Whatever")

    @pytest.mark.parametrize("remark", ["", "   ", None])
    def test_remark_required(self, tracker, people, notice_id, remark):
        with pytest.raises(ValidationFailed, match="Remark is required"):
            tracker.update_status(people.bob, notice_id, "Noted", remark)

    def test_missing_notice(self, tracker, people):
        with pytest.raises(NotFound):
            tracker.update_status(people.bob, 424242, "Noted", "Hello")

    def test_issuer_is_not_a_recipient(self, tracker, people, notice_id):
        with pytest.raises(Forbidden, match="not addressed to you"):
            tracker.update_status(people.alice, notice_id, "Noted", "Mine")

    def test_admin_cannot_respond(self, tracker, people, notice_id):
        with pytest.raises(Forbidden):
            tracker.update_status(people.admin, notice_id, "Completed", "Forced")


# ===========================================================================
# Reply files
# ===========================================================================

class TestReplyFiles:
    def test_reply_is_stored_on_the_row(self, tracker, storage, people, notice_id):
        row = tracker.update_status(
            people.bob, notice_id, "Completed", "Attached",
            reply=Upload(content=b"estimates", filename="estimates.pdf", content_type="application/pdf"),
        )
        assert row.reply_name == "estimates.pdf"
        assert storage.files[row.reply_path] == b"estimates"

    def test_resubmission_without_reply_keeps_previous_reply(self, tracker, people, notice_id):
        tracker.update_status(
            people.bob, notice_id, "Noted", "Draft",
            reply=Upload(content=b"v1", filename="draft.pdf", content_type="application/pdf"),
        )
        row = tracker.update_status(people.bob, notice_id, "Completed", "Final")
        assert row.reply_name == "draft.pdf"

    def test_storage_failure_leaves_row_untouched(self, tracker, db_session, storage, people, notice_id):
        storage.fail_saves = True
        with pytest.raises(StorageFailure):
            tracker.update_status(
                people.bob, notice_id, "Completed", "Attached",
                reply=Upload(content=b"x", filename="x.pdf", content_type="application/pdf"),
            )
        row = _row(db_session, notice_id, people.bob.id)
        assert row.status == "Pending"
        assert row.reply_path is None

    def test_rejected_request_stores_nothing(self, tracker, storage, people, notice_id):
        tracker.update_status(people.bob, notice_id, "Completed", "Done")
        with pytest.raises(StateConflict):
            tracker.update_status(
                people.bob, notice_id, "Noted", "Late file",
                reply=Upload(content=b"x", filename="x.pdf", content_type="application/pdf"),
            )
        assert len(storage.files) == 0

    def test_new_reply_deletes_superseded_file(self, tracker, storage, people, notice_id):
        first = tracker.update_status(
            people.bob, notice_id, "Noted", "First draft",
            reply=Upload(content=b"1", filename="a.pdf", content_type="application/pdf"),
        ).reply_path

        row = tracker.update_status(
            people.bob, notice_id, "Completed", "Final",
            reply=Upload(content=b"2", filename="b.pdf", content_type="application/pdf"),
        )

        assert storage.deleted == [first]
        assert first not in storage.files
        assert row.reply_name == "b.pdf"
        assert storage.files[row.reply_path] == b"2"

    def test_resubmission_without_reply_deletes_nothing(self, tracker, storage, people, notice_id):
        tracker.update_status(
            people.bob, notice_id, "Noted", "Draft",
            reply=Upload(content=b"1", filename="a.pdf", content_type="application/pdf"),
        )
        tracker.update_status(people.bob, notice_id, "Completed", "Final")
        assert storage.deleted == []

    def test_superseded_delete_failure_keeps_the_update(self, tracker, db_session, storage, people, notice_id):
        tracker.update_status(
            people.bob, notice_id, "Noted", "Draft",
            reply=Upload(content=b"1", filename="a.pdf", content_type="application/pdf"),
        )
        storage.fail_deletes = True

        row = tracker.update_status(
            people.bob, notice_id, "Completed", "Final",
            reply=Upload(content=b"2", filename="b.pdf", content_type="application/pdf"),
        )

        assert row.status == "Completed"
        assert _row(db_session, notice_id, people.bob.id).reply_name == "b.pdf"

    def test_disallowed_reply_type_is_rejected(self, tracker, db_session, storage, people, notice_id):
        with pytest.raises(ValidationFailed, match="PDF, JPEG, PNG and WEBP"):
            tracker.update_status(
                people.bob, notice_id, "Completed", "Attached",
                reply=Upload(content=b"x", filename="notes.docx", content_type="application/msword"),
            )
        row = _row(db_session, notice_id, people.bob.id)
        assert row.status == "Pending"
        assert row.reply_path is None
        assert storage.files == {}


# ===========================================================================
# Concurrent completion
# ===========================================================================

class TestConcurrentCompletion:
    def test_completion_elsewhere_wins_over_stale_row(self, tracker, db_session, storage, people, notice_id):
        _row(db_session, notice_id, people.bob.id)
        db_session.execute(
            update(NoticeStatus)
            .where(NoticeStatus.notice_id == notice_id, NoticeStatus.user_id == people.bob.id)
            .values(status="Completed", remark="Done elsewhere")
            .execution_options(synchronize_session=False)
        )

        with pytest.raises(StateConflict, match="already been marked as completed"):
            tracker.update_status(
                people.bob, notice_id, "Completed", "Late",
                reply=Upload(content=b"late", filename="late.pdf", content_type="application/pdf"),
            )

        db_session.expire_all()
        row = _row(db_session, notice_id, people.bob.id)
        assert row.status == "Completed"
        assert row.remark == "Done elsewhere"
        assert row.reply_path is None
        assert storage.files == {}
        assert len(storage.deleted) == 1
