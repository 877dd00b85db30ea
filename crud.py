from typing import Any, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

import models
import schemas


# --- User CRUD ---
def get_user_by_id(db: Session, user_id: int):
    """Get a user by their primary key ID."""
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str):
    return db.query(models.User).filter(models.User.email == email).first()


def create_user(db: Session, user: schemas.UserCreate, hashed_password: Optional[str]):
    db_user = models.User(
        name=user.name,
        email=user.email,
        hashed_password=hashed_password,
    )
    db.add(db_user)
    db.flush()  # Assign ID without committing
    db.refresh(db_user)
    return db_user


# --- Subscription ledger ---
def provision_subscription(db: Session, user_id: int) -> models.Subscription:
    """Give a new user the default FREE/ACTIVE subscription.

    Flushes only; the caller commits together with the user row.
    """
    subscription = models.Subscription(
        user_id=user_id,
        plan=models.PlanTier.FREE,
        status=models.SubscriptionStatus.ACTIVE,
    )
    db.add(subscription)
    db.flush()
    return subscription


def get_subscription(db: Session, user_id: int) -> Optional[models.Subscription]:
    return db.query(models.Subscription).filter(models.Subscription.user_id == user_id).first()


def get_subscription_by_stripe_id(db: Session, stripe_subscription_id: str):
    return (
        db.query(models.Subscription)
        .filter(models.Subscription.stripe_subscription_id == stripe_subscription_id)
        .first()
    )


def set_subscription_plan(
    db: Session,
    user_id: int,
    plan: models.PlanTier,
    status: models.SubscriptionStatus = models.SubscriptionStatus.ACTIVE,
    stripe_customer_id: Optional[str] = None,
    stripe_subscription_id: Optional[str] = None,
) -> models.Subscription:
    """Record a plan change coming from the payment provider."""
    subscription = get_subscription(db, user_id)
    if subscription is None:
        subscription = models.Subscription(user_id=user_id)
        db.add(subscription)
    subscription.plan = plan
    subscription.status = status
    if stripe_customer_id:
        subscription.stripe_customer_id = stripe_customer_id
    if stripe_subscription_id:
        subscription.stripe_subscription_id = stripe_subscription_id
    db.flush()
    return subscription


# --- Portfolio repository ---
def count_portfolios_for_user(db: Session, user_id: int) -> int:
    return (
        db.query(func.count(models.Portfolio.id))
        .filter(models.Portfolio.user_id == user_id)
        .scalar()
    )


def get_portfolio_for_owner(db: Session, portfolio_id: str, user_id: int):
    """Existence and ownership in one lookup: someone else's portfolio is simply absent."""
    return (
        db.query(models.Portfolio)
        .filter(models.Portfolio.id == portfolio_id, models.Portfolio.user_id == user_id)
        .first()
    )


def get_portfolio_by_subdomain(db: Session, subdomain: str):
    return db.query(models.Portfolio).filter(models.Portfolio.subdomain == subdomain).first()


def get_portfolios_for_user(db: Session, user_id: int):
    return (
        db.query(models.Portfolio)
        .filter(models.Portfolio.user_id == user_id)
        .order_by(models.Portfolio.updated_at.desc())
        .all()
    )


def create_portfolio(
    db: Session,
    user_id: int,
    title: str,
    subdomain: str,
    template_id: str,
    data: dict[str, Any],
    config: dict[str, Any],
    free_tier: bool,
) -> models.Portfolio:
    db_portfolio = models.Portfolio(
        user_id=user_id,
        title=title,
        subdomain=subdomain,
        template_id=template_id,
        data=data,
        config=config,
        published=False,
        free_tier_owner_id=user_id if free_tier else None,
    )
    db.add(db_portfolio)
    db.flush()
    return db_portfolio


def update_portfolio(
    db: Session,
    db_portfolio: models.Portfolio,
    title: str,
    subdomain: str,
    template_id: str,
    data: dict[str, Any],
    config: dict[str, Any],
) -> models.Portfolio:
    db_portfolio.title = title
    db_portfolio.subdomain = subdomain
    db_portfolio.template_id = template_id
    db_portfolio.data = data
    db_portfolio.config = config
    db.add(db_portfolio)
    db.flush()
    return db_portfolio


# --- Résumé uploads ---
def create_resume_upload(
    db: Session,
    user_id: int,
    file_name: str,
    parsed_data: dict[str, Any],
    confidence: float,
) -> models.ResumeUpload:
    db_upload = models.ResumeUpload(
        user_id=user_id,
        file_name=file_name,
        parsed_data=parsed_data,
        confidence=confidence,
        status=models.UploadStatus.PARSED,
    )
    db.add(db_upload)
    db.flush()
    return db_upload
