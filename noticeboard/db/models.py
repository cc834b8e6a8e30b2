from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text as sql_text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from noticeboard.db.base import Base


class Department(Base):
    """Reference data.  ``code`` is derived from ``name`` and unique."""

    __tablename__ = "departments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(256), nullable=False)
    website: Mapped[str | None] = mapped_column(String(512), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)

    users: Mapped[list[User]] = relationship(back_populates="department")


class User(Base):
    """Login account.  ``department_id`` is a display label only; admins have none."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("role IN ('admin', 'member')", name="ck_users_role"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False)
    department_id: Mapped[int | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"), nullable=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=sql_text("true"))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    department: Mapped[Department | None] = relationship(back_populates="users")


class Notice(Base):
    """One issued notice.  Always created together with its status rows."""

    __tablename__ = "notices"
    __table_args__ = (
        CheckConstraint("priority IN ('High', 'Normal', 'Low')", name="ck_notices_priority"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(16), nullable=False)
    deadline: Mapped[date] = mapped_column(Date, nullable=False)
    created_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    broadcast: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=sql_text("false"))
    attachment_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    attachment_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())

    creator: Mapped[User] = relationship()
    statuses: Mapped[list[NoticeStatus]] = relationship(
        back_populates="notice",
        cascade="all, delete-orphan",
        order_by="NoticeStatus.id",
    )


class NoticeStatus(Base):
    """Per-recipient acknowledgement state: Pending -> Noted -> Completed."""

    __tablename__ = "notice_status"
    __table_args__ = (
        UniqueConstraint("notice_id", "user_id", name="uq_notice_status_notice_user"),
        CheckConstraint("status IN ('Pending', 'Noted', 'Completed')", name="ck_notice_status_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    notice_id: Mapped[int] = mapped_column(ForeignKey("notices.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default="Pending", server_default=sql_text("'Pending'"), index=True
    )
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    reply_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    reply_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=sql_text("false"))
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    notice: Mapped[Notice] = relationship(back_populates="statuses")
    user: Mapped[User] = relationship()


class NoticeArchiveStat(Base):
    """Monthly completion count preserved from a closed notice.  Never updated."""

    __tablename__ = "notice_archive_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    month: Mapped[str] = mapped_column(String(7), nullable=False, index=True)
    completed: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=sql_text("0"))
    closed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
