"""Notice routes for issuers and recipients.

POST   /api/portal/notices              — create a notice (multipart)
GET    /api/portal/notices/inbox        — notices addressed to the caller
GET    /api/portal/notices/outbox       — notices issued by the caller
GET    /api/portal/notices/{id}         — detail + every recipient status
PATCH  /api/portal/notices/{id}/status  — acknowledge / complete (multipart)
DELETE /api/portal/notices/{id}         — close a notice
"""
from __future__ import annotations

import logging
from dataclasses import asdict

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from noticeboard.api.deps import (
    get_closure_service,
    get_current_identity,
    get_db,
    get_dispatcher,
    get_projections,
    get_status_tracker,
)
from noticeboard.core.policies import Identity
from noticeboard.notices.closure import ClosureService
from noticeboard.notices.dispatch import NoticeDispatcher
from noticeboard.notices.projections import ProjectionEngine
from noticeboard.notices.status import StatusTracker
from noticeboard.storage.blob import Upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/portal/notices", tags=["notices"])


def _to_upload(file: UploadFile | None) -> Upload | None:
    if file is None or not file.filename:
        return None
    return Upload(content=file.file.read(), filename=file.filename, content_type=file.content_type)


@router.post("", status_code=201, summary="Create a notice")
def create_notice(
    title: str = Form(default=""),
    body: str = Form(default=""),
    priority: str = Form(default=""),
    deadline: str = Form(default=""),
    broadcast: bool = Form(default=False),
    recipient_ids: list[int] = Form(default=[]),
    attachment: UploadFile | None = File(default=None),
    identity: Identity = Depends(get_current_identity),
    dispatcher: NoticeDispatcher = Depends(get_dispatcher),
):
    notice_id = dispatcher.create_notice(
        identity,
        title=title,
        body=body,
        priority=priority,
        deadline=deadline,
        broadcast=broadcast,
        recipient_ids=recipient_ids,
        attachment=_to_upload(attachment),
    )
    return {"success": True, "notice_id": notice_id, "message": "Notice created successfully."}


@router.get("/inbox", summary="Notices addressed to the caller")
def get_inbox(
    identity: Identity = Depends(get_current_identity),
    projections: ProjectionEngine = Depends(get_projections),
):
    return [asdict(row) for row in projections.inbox(identity)]


@router.get("/outbox", summary="Notices issued by the caller")
def get_outbox(
    identity: Identity = Depends(get_current_identity),
    projections: ProjectionEngine = Depends(get_projections),
):
    return [asdict(row) for row in projections.outbox(identity)]


@router.get("/{notice_id}", summary="Notice detail with recipient statuses")
def get_notice_detail(
    notice_id: int,
    identity: Identity = Depends(get_current_identity),
    projections: ProjectionEngine = Depends(get_projections),
):
    return asdict(projections.notice_detail(identity, notice_id))


@router.patch("/{notice_id}/status", summary="Acknowledge or complete a notice")
def update_status(
    notice_id: int,
    status: str = Form(default=""),
    remark: str = Form(default=""),
    reply: UploadFile | None = File(default=None),
    identity: Identity = Depends(get_current_identity),
    tracker: StatusTracker = Depends(get_status_tracker),
):
    row = tracker.update_status(identity, notice_id, status, remark, reply=_to_upload(reply))
    return {"success": True, "status": row.status, "message": f"Notice marked as {row.status}."}


@router.delete("/{notice_id}", summary="Close a notice")
def close_notice(
    notice_id: int,
    background_tasks: BackgroundTasks,
    identity: Identity = Depends(get_current_identity),
    closure: ClosureService = Depends(get_closure_service),
    db: Session = Depends(get_db),
):
    result = closure.close_notice(identity, notice_id)
    # Files go only once the delete is durable.
    db.commit()
    background_tasks.add_task(closure.purge_files, result.file_refs)
    return {
        "success": True,
        "notice_id": result.notice_id,
        "archived": result.archived,
        "message": "Notice closed successfully.",
    }
