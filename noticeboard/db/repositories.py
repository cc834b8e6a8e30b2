from __future__ import annotations

from collections.abc import Iterable
from typing import Generic, TypeVar

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session, joinedload

from noticeboard.core.constants import AckStatus
from noticeboard.core.policies import Role
from noticeboard.db import models

ModelT = TypeVar("ModelT")


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    def create(self, **kwargs) -> ModelT:
        entity = self.model(**kwargs)
        self.db.add(entity)
        self.db.flush()
        return entity

    def get(self, entity_id: int) -> ModelT | None:
        return self.db.get(self.model, entity_id)

    def list(self, limit: int = 100, offset: int = 0) -> list[ModelT]:
        stmt = select(self.model).offset(offset).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def update(self, entity: ModelT, **kwargs) -> ModelT:
        for key, value in kwargs.items():
            setattr(entity, key, value)
        self.db.flush()
        return entity

    def delete(self, entity: ModelT) -> None:
        self.db.delete(entity)
        self.db.flush()


class DepartmentRepository(BaseRepository[models.Department]):
    model = models.Department

    def get_by_code(self, code: str) -> models.Department | None:
        stmt = select(models.Department).where(models.Department.code == code)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_by_category(self, category: str | None = None) -> list[models.Department]:
        stmt = select(models.Department).order_by(models.Department.name.asc(), models.Department.id.asc())
        if category is not None:
            stmt = stmt.where(models.Department.category == category)
        return list(self.db.execute(stmt).scalars().all())


class UserRepository(BaseRepository[models.User]):
    model = models.User

    def get_by_username(self, username: str) -> models.User | None:
        stmt = select(models.User).where(models.User.username == username)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_many(self, user_ids: Iterable[int]) -> list[models.User]:
        ids = list(user_ids)
        if not ids:
            return []
        stmt = select(models.User).where(models.User.id.in_(ids))
        return list(self.db.execute(stmt).scalars().all())

    def list_broadcast_recipients(self, exclude_user_id: int) -> list[models.User]:
        """Every active, non-admin account except *exclude_user_id*, by id."""
        stmt = (
            select(models.User)
            .where(
                models.User.is_active.is_(True),
                models.User.role != Role.ADMIN.value,
                models.User.id != exclude_user_id,
            )
            .order_by(models.User.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_directory(self) -> list[models.User]:
        """Admins first, then alphabetical by username."""
        admin_first = case((models.User.role == Role.ADMIN.value, 0), else_=1)
        stmt = (
            select(models.User)
            .options(joinedload(models.User.department))
            .order_by(admin_first, models.User.username.asc())
        )
        return list(self.db.execute(stmt).scalars().all())


class NoticeRepository(BaseRepository[models.Notice]):
    model = models.Notice

    def count(self) -> int:
        return self.db.execute(select(func.count(models.Notice.id))).scalar_one()

    def get_with_statuses(self, notice_id: int) -> models.Notice | None:
        stmt = (
            select(models.Notice)
            .where(models.Notice.id == notice_id)
            .options(
                joinedload(models.Notice.creator).joinedload(models.User.department),
                joinedload(models.Notice.statuses)
                .joinedload(models.NoticeStatus.user)
                .joinedload(models.User.department),
            )
        )
        return self.db.execute(stmt).unique().scalar_one_or_none()

    def list_newest_first(self, created_by: int | None = None) -> list[models.Notice]:
        stmt = (
            select(models.Notice)
            .options(
                joinedload(models.Notice.creator).joinedload(models.User.department),
                joinedload(models.Notice.statuses)
                .joinedload(models.NoticeStatus.user)
                .joinedload(models.User.department),
            )
            .order_by(models.Notice.created_at.desc(), models.Notice.id.desc())
        )
        if created_by is not None:
            stmt = stmt.where(models.Notice.created_by == created_by)
        return list(self.db.execute(stmt).unique().scalars().all())


class NoticeStatusRepository(BaseRepository[models.NoticeStatus]):
    model = models.NoticeStatus

    def get_for_recipient(self, notice_id: int, user_id: int) -> models.NoticeStatus | None:
        stmt = select(models.NoticeStatus).where(
            models.NoticeStatus.notice_id == notice_id,
            models.NoticeStatus.user_id == user_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_recipient(self, user_id: int) -> list[models.NoticeStatus]:
        stmt = (
            select(models.NoticeStatus)
            .where(models.NoticeStatus.user_id == user_id)
            .options(
                joinedload(models.NoticeStatus.notice)
                .joinedload(models.Notice.creator)
                .joinedload(models.User.department)
            )
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_notice(self, notice_id: int) -> list[models.NoticeStatus]:
        stmt = (
            select(models.NoticeStatus)
            .where(models.NoticeStatus.notice_id == notice_id)
            .order_by(models.NoticeStatus.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_pending(self) -> int:
        stmt = select(func.count(models.NoticeStatus.id)).where(
            models.NoticeStatus.status == AckStatus.PENDING.value
        )
        return self.db.execute(stmt).scalar_one()

    def count_overdue_notices(self, today) -> int:
        """Distinct notices past *today* with at least one Pending recipient."""
        stmt = (
            select(func.count(func.distinct(models.Notice.id)))
            .join(models.NoticeStatus, models.NoticeStatus.notice_id == models.Notice.id)
            .where(
                models.Notice.deadline < today,
                models.NoticeStatus.status == AckStatus.PENDING.value,
            )
        )
        return self.db.execute(stmt).scalar_one()

    def list_completed(self, notice_id: int | None = None) -> list[models.NoticeStatus]:
        stmt = select(models.NoticeStatus).where(
            models.NoticeStatus.status == AckStatus.COMPLETED.value,
            models.NoticeStatus.updated_at.is_not(None),
        )
        if notice_id is not None:
            stmt = stmt.where(models.NoticeStatus.notice_id == notice_id)
        return list(self.db.execute(stmt).scalars().all())

    def list_responded(self) -> list[models.NoticeStatus]:
        """Noted or Completed rows, with their notice and recipient loaded."""
        stmt = (
            select(models.NoticeStatus)
            .where(
                models.NoticeStatus.status.in_([AckStatus.NOTED.value, AckStatus.COMPLETED.value]),
                models.NoticeStatus.updated_at.is_not(None),
            )
            .options(
                joinedload(models.NoticeStatus.notice),
                joinedload(models.NoticeStatus.user).joinedload(models.User.department),
            )
        )
        return list(self.db.execute(stmt).scalars().all())

    def mark_read(self, notice_id: int, user_id: int) -> int:
        """Flip ``is_read`` for one recipient if unread; return rows changed."""
        stmt = (
            update(models.NoticeStatus)
            .where(
                models.NoticeStatus.notice_id == notice_id,
                models.NoticeStatus.user_id == user_id,
                models.NoticeStatus.is_read.is_(False),
            )
            .values(is_read=True)
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        self.db.flush()
        return result.rowcount

    def apply_response(self, notice_id: int, user_id: int, **values) -> int:
        """Write a recipient response unless the row is already Completed.

        Returns rows changed; 0 means a concurrent completion got there first.
        """
        stmt = (
            update(models.NoticeStatus)
            .where(
                models.NoticeStatus.notice_id == notice_id,
                models.NoticeStatus.user_id == user_id,
                models.NoticeStatus.status != AckStatus.COMPLETED.value,
            )
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        result = self.db.execute(stmt)
        self.db.flush()
        return result.rowcount


class NoticeArchiveStatRepository(BaseRepository[models.NoticeArchiveStat]):
    model = models.NoticeArchiveStat

    def month_totals(self) -> dict[str, int]:
        stmt = (
            select(models.NoticeArchiveStat.month, func.sum(models.NoticeArchiveStat.completed))
            .group_by(models.NoticeArchiveStat.month)
        )
        return {month: int(total or 0) for month, total in self.db.execute(stmt).all()}
