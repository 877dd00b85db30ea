import structlog
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional

import crud
import models
import quota
import schemas
import templates_registry
from auth import hash_password
from outcomes import ErrorKind, Failure, Outcome, Success
from publish_state import PublishEvent, apply_event
from security import sanitize
from slugs import slugify

# Set up logging
logger = structlog.get_logger(__name__)

QUOTA_MESSAGE = "Upgrade required to create more portfolios"
SUBDOMAIN_TAKEN_MESSAGE = "Subdomain already in use"
NOT_FOUND_MESSAGE = "Portfolio not found"


def register_user(db: Session, user_in: schemas.UserCreate) -> "Outcome[models.User]":
    """Create the user and their FREE subscription in one transaction."""
    if crud.get_user_by_email(db, user_in.email):
        return Failure(ErrorKind.CONFLICT, "Account already exists")

    try:
        user = crud.create_user(db, user_in, hashed_password=hash_password(user_in.password))
        crud.provision_subscription(db, user.id)
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.rollback()
        return Failure(ErrorKind.CONFLICT, "Account already exists")

    db.refresh(user)
    logger.info("User registered", user_id=user.id)
    return Success(user)


def _render_payload(payload: schemas.PortfolioPayload) -> tuple[dict, dict]:
    """Sanitize data and config, then validate them again.

    Stripping markup can empty a field that passed validation, e.g. a name
    made only of a script element. Raises ValidationError in that case.
    """
    data = sanitize(payload.data.model_dump(mode="json", by_alias=True, exclude_none=True))
    config = sanitize(payload.config.model_dump(mode="json", by_alias=True, exclude_none=True))
    schemas.PortfolioData.model_validate(data)
    schemas.PortfolioConfig.model_validate(config)
    return data, config


def save_portfolio(
    db: Session, user_id: int, payload: schemas.PortfolioPayload
) -> "Outcome[models.Portfolio]":
    """Create or update a portfolio and return it in Draft.

    Runs sanitize -> slug -> template check -> quota -> ownership/slug checks
    -> write. Expected rejections come back as ``Failure`` values.
    """
    log = logger.bind(user_id=user_id, portfolio_id=payload.portfolio_id)
    try:
        data, config = _render_payload(payload)
    except ValidationError as exc:
        fields = sorted({".".join(str(part) for part in error["loc"]) for error in exc.errors()})
        log.info("Save rejected: content empty after sanitizing", fields=fields)
        return Failure(
            ErrorKind.VALIDATION,
            f"Invalid content after removing script markup: {', '.join(fields)}",
        )

    subdomain = slugify(payload.subdomain)
    if not subdomain:
        return Failure(ErrorKind.VALIDATION, "Subdomain must contain letters or digits")

    template = templates_registry.get_template(payload.template_id)
    if template is None:
        log.info("Save rejected: unknown template", template_id=payload.template_id)
        return Failure(ErrorKind.NOT_FOUND, "Template not found")

    if payload.config.sections is not None:
        unsupported = sorted(set(payload.config.sections) - set(template.sections))
        if unsupported:
            return Failure(
                ErrorKind.VALIDATION,
                f"Template '{template.id}' has no section(s): {', '.join(unsupported)}",
            )

    is_new = payload.portfolio_id is None
    subscription = crud.get_subscription(db, user_id)
    existing_count = crud.count_portfolios_for_user(db, user_id)
    decision = quota.can_create(user_id, subscription, existing_count, is_new)
    if decision is quota.QuotaDecision.DENY:
        return Failure(ErrorKind.QUOTA_EXCEEDED, QUOTA_MESSAGE)

    portfolio: Optional[models.Portfolio] = None
    if not is_new:
        portfolio = crud.get_portfolio_for_owner(db, payload.portfolio_id, user_id)
        if portfolio is None:
            return Failure(ErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)

    holder = crud.get_portfolio_by_subdomain(db, subdomain)
    if holder is not None and holder.id != payload.portfolio_id:
        log.info("Save rejected: subdomain taken", subdomain=subdomain, same_owner=holder.user_id == user_id)
        return Failure(ErrorKind.CONFLICT, SUBDOMAIN_TAKEN_MESSAGE)

    try:
        if portfolio is None:
            portfolio = crud.create_portfolio(
                db,
                user_id=user_id,
                title=payload.title,
                subdomain=subdomain,
                template_id=template.id,
                data=data,
                config=config,
                free_tier=quota.is_free_tier(subscription),
            )
        else:
            crud.update_portfolio(
                db,
                portfolio,
                title=payload.title,
                subdomain=subdomain,
                template_id=template.id,
                data=data,
                config=config,
            )
        apply_event(portfolio, PublishEvent.SAVE)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # A concurrent request got there between our checks and the write
        holder = crud.get_portfolio_by_subdomain(db, subdomain)
        if holder is not None and holder.id != payload.portfolio_id:
            log.warning("Subdomain claimed concurrently", subdomain=subdomain)
            return Failure(ErrorKind.CONFLICT, SUBDOMAIN_TAKEN_MESSAGE)
        if is_new:
            log.warning("Free-tier portfolio created concurrently")
            return Failure(ErrorKind.QUOTA_EXCEEDED, QUOTA_MESSAGE)
        raise exc

    db.refresh(portfolio)
    log.info("Portfolio saved", portfolio_id=portfolio.id, subdomain=subdomain, created=is_new)
    return Success(portfolio)


def publish_portfolio(
    db: Session, user_id: int, portfolio_id: Optional[str]
) -> "Outcome[models.Portfolio]":
    """Publish a portfolio the caller owns.

    A missing id, a missing portfolio and someone else's portfolio all give the
    same NotFound so callers learn nothing about other tenants.
    """
    portfolio = crud.get_portfolio_for_owner(db, portfolio_id, user_id) if portfolio_id else None
    if portfolio is None:
        logger.info("Publish rejected", user_id=user_id, portfolio_id=portfolio_id)
        return Failure(ErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)

    apply_event(portfolio, PublishEvent.PUBLISH)
    db.commit()
    db.refresh(portfolio)
    logger.info("Portfolio published", user_id=user_id, portfolio_id=portfolio.id)
    return Success(portfolio)


def get_public_portfolio(db: Session, subdomain: str) -> "Outcome[models.Portfolio]":
    portfolio = crud.get_portfolio_by_subdomain(db, subdomain)
    if portfolio is None or not portfolio.published:
        return Failure(ErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)
    return Success(portfolio)
