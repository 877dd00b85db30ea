import enum
import uuid

from sqlalchemy.orm import relationship
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    func,
)
from database import Base


class PlanTier(str, enum.Enum):
    FREE = "FREE"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    PAST_DUE = "PAST_DUE"
    CANCELED = "CANCELED"


class UploadStatus(str, enum.Enum):
    PARSED = "PARSED"


def _new_id() -> str:
    return uuid.uuid4().hex


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    name = Column(String, nullable=True)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    subscription = relationship("Subscription", back_populates="user", uselist=False)
    portfolios = relationship("Portfolio", back_populates="owner", foreign_keys="Portfolio.user_id")
    resume_uploads = relationship("ResumeUpload", back_populates="owner")


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    plan = Column(Enum(PlanTier, name="plan_tier"), default=PlanTier.FREE, nullable=False)
    status = Column(
        Enum(SubscriptionStatus, name="subscription_status"),
        default=SubscriptionStatus.ACTIVE,
        nullable=False,
    )
    stripe_customer_id = Column(String, nullable=True)
    stripe_subscription_id = Column(String, unique=True, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="subscription")


class Portfolio(Base):
    __tablename__ = "portfolios"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    title = Column(String, nullable=False)
    subdomain = Column(String(63), unique=True, index=True, nullable=False)
    template_id = Column(String, nullable=False)
    data = Column(JSON, nullable=False)
    config = Column(JSON, nullable=False)
    published = Column(Boolean, default=False, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
    # Set to the owner's id only for portfolios created on the free plan. The
    # unique constraint caps free owners at one portfolio even under races.
    free_tier_owner_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=True)

    owner = relationship("User", back_populates="portfolios", foreign_keys=[user_id])


class ResumeUpload(Base):
    __tablename__ = "resume_uploads"

    id = Column(String(32), primary_key=True, default=_new_id)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    file_name = Column(String, nullable=True)
    parsed_data = Column(JSON, nullable=False)
    confidence = Column(Float, nullable=False)
    status = Column(Enum(UploadStatus, name="upload_status"), default=UploadStatus.PARSED, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    owner = relationship("User", back_populates="resume_uploads")
