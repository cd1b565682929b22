"""
Grant Portal Database Models
SQLAlchemy ORM models for grants, proposals, reviews and reporting.
"""
import enum
import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """
    Timestamp stored as naive UTC and always returned timezone-aware.

    Keeps comparisons against ``utcnow()`` valid on every backend.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=timezone.utc)


def _enum(enum_cls: type[enum.Enum], name: str) -> Enum:
    """Enum column persisting the member *values* ("Under Review", not UNDER_REVIEW)."""
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [m.value for m in members],
        validate_strings=True,
    )


# =============================================================================
# Enumerations
# =============================================================================


class UserRole(str, enum.Enum):
    RESEARCHER = "researcher"
    REVIEWER = "reviewer"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    PENDING = "pending"


class GrantStatus(str, enum.Enum):
    ACTIVE = "Active"
    CLOSED = "Closed"


class GrantCategory(str, enum.Enum):
    TECHNOLOGY = "Technology"
    ENVIRONMENT = "Environment"
    HEALTH = "Health"
    EDUCATION = "Education"
    AGRICULTURE = "Agriculture"


class ProposalStatus(str, enum.Enum):
    """Proposal lifecycle. DRAFT is declared but never produced by submission."""

    DRAFT = "Draft"
    UNDER_REVIEW = "Under Review"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    NEEDS_REVISION = "Needs Revision"


class ReviewStatus(str, enum.Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class ReviewDecision(str, enum.Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"
    REVISIONS_REQUESTED = "Revisions Requested"


class ReportStatus(str, enum.Enum):
    FINAL = "Final"
    DRAFT = "Draft"


class NotificationType(str, enum.Enum):
    PROPOSAL_SUBMITTED = "PROPOSAL_SUBMITTED"
    REVIEW_COMPLETED = "REVIEW_COMPLETED"
    GRANT_DEADLINE = "GRANT_DEADLINE"
    SYSTEM_ALERT = "SYSTEM_ALERT"
    NEW_GRANT = "NEW_GRANT"
    PROPOSAL_STATUS_UPDATE = "PROPOSAL_STATUS_UPDATE"
    GRANT_DEADLINE_REMINDER = "GRANT_DEADLINE_REMINDER"
    APPLICATION_DEADLINE = "APPLICATION_DEADLINE"
    REVIEW_ASSIGNED = "REVIEW_ASSIGNED"
    REVIEW_DEADLINE_REMINDER = "REVIEW_DEADLINE_REMINDER"
    PROPOSAL_STATUS_CHANGE = "PROPOSAL_STATUS_CHANGE"


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnnouncementPriority(str, enum.Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# Shared by grants and proposal snapshots so the database type is declared once
GRANT_CATEGORY_TYPE = _enum(GrantCategory, "grant_category")


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class TimestampMixin:
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )


# =============================================================================
# Users
# =============================================================================


class User(TimestampMixin, Base):
    """
    Portal account.

    Role is fixed at creation for self-registered users (always researcher);
    admins may create users with any role and edit them afterwards, each edit
    being recorded as a UserChange row.
    """

    __tablename__ = "users"

    first_name: Mapped[str] = mapped_column(String(50), nullable=False)
    last_name: Mapped[str] = mapped_column(String(50), nullable=False)
    email: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        index=True,
        doc="Stored lower-cased",
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(
        _enum(UserRole, "user_role"),
        nullable=False,
        default=UserRole.RESEARCHER,
    )
    institution: Mapped[str] = mapped_column(String(100), nullable=False)
    department: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    profile_image: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[UserStatus] = mapped_column(
        _enum(UserStatus, "user_status"),
        nullable=False,
        default=UserStatus.ACTIVE,
    )

    is_email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    email_verification_token_hash: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        index=True,
        doc="SHA-256 of the emailed verification token",
    )
    email_verification_expires: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Denormalised "last modified by" summary, history lives in user_changes
    last_modified_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    last_modified_by_name: Mapped[Optional[str]] = mapped_column(String(101), nullable=True)
    last_modified_by_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_modified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role.value})>"


class UserChange(Base):
    """One field changed by an admin on a user record."""

    __tablename__ = "user_changes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    admin_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    admin_name: Mapped[Optional[str]] = mapped_column(String(101), nullable=True)
    admin_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    field: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    new_value: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    changed_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


# =============================================================================
# Grants, proposals and reviews
# =============================================================================


class Grant(TimestampMixin, Base):
    """Funding opportunity posted by an admin."""

    __tablename__ = "grants"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[GrantCategory] = mapped_column(GRANT_CATEGORY_TYPE, nullable=False)
    funding: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    requirements: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[GrantStatus] = mapped_column(
        _enum(GrantStatus, "grant_status"),
        nullable=False,
        default=GrantStatus.ACTIVE,
    )
    applicants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    approved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (Index("ix_grants_status_deadline", "status", "deadline"),)

    def __repr__(self) -> str:
        return f"<Grant(id={self.id}, title={self.title[:30]}, status={self.status.value})>"


class Proposal(TimestampMixin, Base):
    """
    A researcher's application against one grant.

    ``deadline``, ``funding`` and ``category`` are copied from the grant at
    submission time and never follow later grant edits.
    """

    __tablename__ = "proposals"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    abstract: Mapped[str] = mapped_column(Text, nullable=False)
    objectives: Mapped[str] = mapped_column(Text, nullable=False)
    methodology: Mapped[str] = mapped_column(Text, nullable=False)
    timeline: Mapped[str] = mapped_column(Text, nullable=False)
    expected_outcomes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    status: Mapped[ProposalStatus] = mapped_column(
        _enum(ProposalStatus, "proposal_status"),
        nullable=False,
        default=ProposalStatus.UNDER_REVIEW,
        index=True,
    )
    date_submitted: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True, index=True)

    deadline: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    funding: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    category: Mapped[GrantCategory] = mapped_column(GRANT_CATEGORY_TYPE, nullable=False)
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    personnel_costs: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    equipment_costs: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    materials_costs: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    travel_costs: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))
    other_costs: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False, default=Decimal("0"))

    proposal_document: Mapped[str] = mapped_column(Text, nullable=False)
    cv_resume: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    additional_documents: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    recommended_score: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    recommendation: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    researcher_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    grant_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("grants.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    researcher: Mapped["User"] = relationship(foreign_keys=[researcher_id], lazy="selectin")
    reviewer: Mapped[Optional["User"]] = relationship(foreign_keys=[reviewer_id], lazy="selectin")
    grant: Mapped["Grant"] = relationship(lazy="selectin")

    @property
    def budget_total(self) -> Decimal:
        return (
            self.personnel_costs
            + self.equipment_costs
            + self.materials_costs
            + self.travel_costs
            + self.other_costs
        )

    def __repr__(self) -> str:
        return f"<Proposal(id={self.id}, title={self.title[:30]}, status={self.status.value})>"


class Review(TimestampMixin, Base):
    """One reviewer's evaluation of one proposal. Unique per (proposal, reviewer)."""

    __tablename__ = "reviews"

    proposal_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("proposals.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reviewer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    status: Mapped[ReviewStatus] = mapped_column(
        _enum(ReviewStatus, "review_status"),
        nullable=False,
        default=ReviewStatus.PENDING,
    )
    decision: Mapped[Optional[ReviewDecision]] = mapped_column(
        _enum(ReviewDecision, "review_decision"),
        nullable=True,
    )
    score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    innovation_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    impact_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    feasibility_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    comments: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    review_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    proposal: Mapped["Proposal"] = relationship(lazy="selectin")
    reviewer: Mapped["User"] = relationship(lazy="selectin")

    __table_args__ = (UniqueConstraint("proposal_id", "reviewer_id", name="uq_reviews_proposal_reviewer"),)


# =============================================================================
# Reporting
# =============================================================================


class Report(TimestampMixin, Base):
    """Immutable monthly snapshot. Several rows may exist for the same period."""

    __tablename__ = "reports"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False, index=True, doc="YYYY-MM")
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_proposals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    approved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rejected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pending: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_funding: Mapped[str] = mapped_column(String(32), nullable=False, doc='Formatted, e.g. "$4,000"')
    average_score: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    active_grants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    closed_grants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    generated_date: Mapped[str] = mapped_column(String(10), nullable=False, doc="YYYY-MM-DD")
    status: Mapped[ReportStatus] = mapped_column(
        _enum(ReportStatus, "report_status"),
        nullable=False,
        default=ReportStatus.FINAL,
    )


# =============================================================================
# Notifications
# =============================================================================


def default_notification_expiry() -> datetime:
    return utcnow() + timedelta(days=30)


class Notification(TimestampMixin, Base):
    """In-app notification written by the notification outbox task."""

    __tablename__ = "notifications"

    recipient_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )
    type: Mapped[NotificationType] = mapped_column(_enum(NotificationType, "notification_type"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    priority: Mapped[NotificationPriority] = mapped_column(
        _enum(NotificationPriority, "notification_priority"),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=default_notification_expiry)

    __table_args__ = (
        Index("ix_notifications_recipient_read", "recipient_id", "read"),
        Index("ix_notifications_recipient_created", "recipient_id", "created_at"),
    )


# =============================================================================
# Portal content
# =============================================================================


class Announcement(TimestampMixin, Base):
    __tablename__ = "announcements"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    excerpt: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[AnnouncementPriority] = mapped_column(
        _enum(AnnouncementPriority, "announcement_priority"),
        nullable=False,
        default=AnnouncementPriority.LOW,
    )
    date: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    author: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    read_time: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    views: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    pinned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Thread(TimestampMixin, Base):
    """Community discussion thread. ``updated_at`` moves with each reply."""

    __tablename__ = "threads"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    domain: Mapped[str] = mapped_column(String(100), nullable=False)
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)

    replies: Mapped[list["ThreadReply"]] = relationship(
        back_populates="thread",
        cascade="all, delete-orphan",
        order_by="ThreadReply.created_at",
        lazy="selectin",
    )


class ThreadReply(Base):
    __tablename__ = "thread_replies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    thread_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author: Mapped[str] = mapped_column(String(255), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    thread: Mapped["Thread"] = relationship(back_populates="replies")


class Resource(TimestampMixin, Base):
    __tablename__ = "resources"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    link: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)


class ContactMessage(TimestampMixin, Base):
    __tablename__ = "contact_messages"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
