from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.taskmate.models import Base


class Task(Base):
    __tablename__ = "tasks"
    __table_args__ = (
        Index("idx_tasks_user_done", "user_id", "is_done"),
        Index("idx_tasks_user_category", "user_id", "category"),
        Index("idx_tasks_user_priority", "user_id", "priority"),
        Index("idx_tasks_user_due", "user_id", "due_date"),
        Index("idx_tasks_user_created", "user_id", "created_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="personal")
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default="medium")  # low, medium, high, urgent

    is_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=False), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    tags: Mapped[list["TaskTag"]] = relationship(
        "TaskTag",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TaskTag.position",
    )
    sub_tasks: Mapped[list["SubTask"]] = relationship(
        "SubTask",
        back_populates="task",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="SubTask.id",
    )

    @property
    def tag_names(self) -> list[str]:
        return [t.name for t in self.tags]

    @property
    def completion_percentage(self) -> int:
        if not self.sub_tasks:
            return 0
        done = sum(1 for st in self.sub_tasks if st.is_done)
        return round(done / len(self.sub_tasks) * 100)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "priority": self.priority,
            "is_done": self.is_done,
            "due_date": _iso(self.due_date),
            "completed_at": _iso(self.completed_at),
            "tags": self.tag_names,
            "sub_tasks": [st.to_dict() for st in self.sub_tasks],
            "completion_percentage": self.completion_percentage,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class TaskTag(Base):
    __tablename__ = "task_tags"
    __table_args__ = (Index("idx_task_tags_task", "task_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(30), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    task: Mapped["Task"] = relationship("Task", back_populates="tags")


class SubTask(Base):
    __tablename__ = "sub_tasks"
    __table_args__ = (Index("idx_sub_tasks_task", "task_id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    task_id: Mapped[int] = mapped_column(ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    is_done: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    task: Mapped["Task"] = relationship("Task", back_populates="sub_tasks")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "is_done": self.is_done,
            "created_at": _iso(self.created_at),
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None
