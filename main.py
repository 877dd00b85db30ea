import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List

from fastapi import (
    FastAPI,
    Depends,
    HTTPException,
    Request,
    Header,
    status,
)
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
import stripe
import structlog

import models
import schemas
import crud
import logic
import templates_registry
from auth import authenticate_user, create_access_token, get_current_user
from database import create_db_and_tables, get_db
from outcomes import unwrap
from rate_limit import SlidingWindowRateLimiter, create_redis_client
from request_id_middleware import RequestIdMiddleware
from resume_ingestion import ingest_resume
from resume_parser import ResumeParser, build_resume_parser
from settings import get_settings, Settings
from observability import init_observability


# Initialise observability before creating app
init_observability()
logger = structlog.get_logger(__name__)

# Create DB tables on startup
create_db_and_tables()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One Redis client per process, shared by every request
    app.state.redis = create_redis_client(get_settings().redis_url)
    try:
        yield
    finally:
        if app.state.redis is not None:
            await app.state.redis.aclose()


app = FastAPI(
    title="Portfolio Builder",
    description="Backend API for the multi-tenant portfolio builder",
    version="0.1.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
origins = [
    "http://localhost",
    "http://localhost:3000",
    "http://localhost:8000",
    "http://127.0.0.1",
    "http://127.0.0.1:8000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestIdMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed payloads are a 400 with field-level details."""
    logger.info("Request validation failed", error_count=len(exc.errors()))
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid payload", "errors": jsonable_encoder(exc.errors())},
    )


# --- Dependencies for shared handles ---
def get_rate_limiter(
    request: Request,
    settings: Settings = Depends(get_settings),
) -> SlidingWindowRateLimiter:
    return SlidingWindowRateLimiter(
        client=getattr(request.app.state, "redis", None),
        limit=settings.resume_rate_limit,
        window_seconds=settings.resume_rate_window_seconds,
    )


def get_resume_parser(settings: Settings = Depends(get_settings)) -> ResumeParser:
    return build_resume_parser(settings)


@app.get("/health", tags=["Health"])
def health():
    return {
        "status": "OK",
        "message": "Portfolio Builder API is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# --- Auth & user endpoints ---
@app.post("/auth/register", response_model=schemas.RegisterResponse, tags=["Auth"])
def register_endpoint(user: schemas.UserCreate, db: Session = Depends(get_db)):
    created = unwrap(logic.register_user(db, user))
    return {"user": schemas.UserOut.model_validate(created)}


@app.post("/auth/token", response_model=schemas.Token, tags=["Auth"])
def login_endpoint(
    credentials: schemas.LoginRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    return schemas.Token(access_token=create_access_token(user, settings))


@app.get("/users/me", response_model=schemas.CurrentUser, tags=["Auth"])
def get_me(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Returns the authenticated user with their current plan."""
    subscription = crud.get_subscription(db, current_user.id)
    plan = subscription.plan.value if subscription else models.PlanTier.FREE.value
    return schemas.CurrentUser(
        id=current_user.id, name=current_user.name, email=current_user.email, plan=plan
    )


# --- Templates ---
@app.get("/templates", response_model=List[schemas.TemplateOut], tags=["Templates"])
def list_templates_endpoint():
    return templates_registry.list_templates()


# --- Portfolio endpoints ---
@app.post("/portfolios/save", response_model=schemas.PortfolioEnvelope, tags=["Portfolios"])
def save_portfolio_endpoint(
    payload: schemas.PortfolioPayload,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    portfolio = unwrap(logic.save_portfolio(db, current_user.id, payload))
    return schemas.PortfolioEnvelope(portfolio=schemas.PortfolioOut.model_validate(portfolio))


@app.post("/portfolios/publish", response_model=schemas.PortfolioEnvelope, tags=["Portfolios"])
def publish_portfolio_endpoint(
    body: schemas.PublishRequest,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    portfolio = unwrap(logic.publish_portfolio(db, current_user.id, body.portfolio_id))
    return schemas.PortfolioEnvelope(portfolio=schemas.PortfolioOut.model_validate(portfolio))


@app.get("/portfolios", response_model=List[schemas.PortfolioOut], tags=["Portfolios"])
def list_portfolios_endpoint(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return [
        schemas.PortfolioOut.model_validate(portfolio)
        for portfolio in crud.get_portfolios_for_user(db, current_user.id)
    ]


@app.get("/portfolios/{subdomain}", response_model=schemas.PublicPortfolio, tags=["Portfolios"])
def read_public_portfolio_endpoint(subdomain: str, db: Session = Depends(get_db)):
    """Public, unauthenticated view of a published portfolio."""
    portfolio = unwrap(logic.get_public_portfolio(db, subdomain))
    return schemas.PublicPortfolio.model_validate(portfolio)


# --- Résumé upload ---
@app.post("/upload/resume", response_model=schemas.ResumeIngestResponse, tags=["Resume"])
async def upload_resume_endpoint(
    request: Request,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db),
    limiter: SlidingWindowRateLimiter = Depends(get_rate_limiter),
    parser: ResumeParser = Depends(get_resume_parser),
):
    form = await request.form()
    outcome = await ingest_resume(
        db,
        current_user.id,
        form.getlist("file"),
        limiter=limiter,
        parser=parser,
    )
    return unwrap(outcome)


# --- Stripe Checkout Session endpoint ---
@app.post("/billing/checkout", response_model=schemas.CheckoutResponse, tags=["Billing"])
async def create_checkout_session(
    checkout: schemas.CheckoutRequest,
    current_user: models.User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    if not settings.stripe_secret_key:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe is not configured",
        )

    plan = checkout.plan.upper()
    price_id = settings.price_for_plan(plan)
    if not price_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid plan")

    stripe.api_key = settings.stripe_secret_key
    metadata = {"user_id": str(current_user.id), "plan": plan}

    logger.info("Creating Stripe checkout session", user_id=current_user.id, plan=plan)
    loop = asyncio.get_running_loop()
    try:
        session = await loop.run_in_executor(
            None,
            lambda: stripe.checkout.Session.create(
                mode="subscription",
                customer_email=current_user.email,
                line_items=[{"price": price_id, "quantity": 1}],
                success_url=f"{settings.app_base_url}/settings/billing?status=success",
                cancel_url=f"{settings.app_base_url}/settings/billing?status=cancelled",
                metadata=metadata,
                subscription_data={"metadata": metadata},
            ),
        )
    except stripe.StripeError as exc:
        logger.error("Stripe checkout session failed", user_id=current_user.id, exc=str(exc))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Payment provider unavailable",
        )
    logger.info("Stripe checkout session created", session_id=session.id, user_id=current_user.id)
    return {"url": session.url}


# --- Stripe Webhook Endpoint --- #
@app.post("/billing/webhook", tags=["Billing"])
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(None),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Reflect plan changes made at the payment provider into the subscription ledger."""
    if not settings.stripe_webhook_secret:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Stripe webhook secret missing",
        )

    payload = await request.body()
    try:
        event = stripe.Webhook.construct_event(payload, stripe_signature, settings.stripe_webhook_secret)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid payload")
    except stripe.SignatureVerificationError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")

    event_id = event["id"]
    event_type = event["type"]
    data_object = event["data"]["object"]
    logger.info("Stripe webhook event received", event_id=event_id, event_type=event_type)

    if event_type == "checkout.session.completed":
        metadata = data_object.get("metadata") or {}
        user_id = metadata.get("user_id")
        plan = metadata.get("plan")
        if not str(user_id or "").isdigit() or plan not in models.PlanTier.__members__:
            logger.warning("Checkout session without usable metadata", event_id=event_id)
            return JSONResponse(
                content={"status": "error", "detail": "Missing user_id or plan in metadata"},
                status_code=200,
            )

        user = crud.get_user_by_id(db, int(user_id))
        if not user:
            logger.warning("User from checkout not found; skipping plan change", user_id=user_id)
            return JSONResponse(content={"status": "success"}, status_code=200)

        crud.set_subscription_plan(
            db,
            user.id,
            plan=models.PlanTier(plan),
            status=models.SubscriptionStatus.ACTIVE,
            stripe_customer_id=data_object.get("customer"),
            stripe_subscription_id=data_object.get("subscription"),
        )
        db.commit()
        logger.info("Subscription plan updated", user_id=user.id, plan=plan)

    elif event_type == "customer.subscription.deleted":
        subscription = crud.get_subscription_by_stripe_id(db, data_object.get("id"))
        if subscription:
            crud.set_subscription_plan(
                db,
                subscription.user_id,
                plan=models.PlanTier.FREE,
                status=models.SubscriptionStatus.CANCELED,
            )
            db.commit()
            logger.info("Subscription canceled; back on FREE", user_id=subscription.user_id)
        else:
            logger.warning("Canceled Stripe subscription not in ledger", event_id=event_id)

    else:
        # Unhandled event type (return 200 OK to Stripe)
        logger.info("Stripe webhook: unhandled event type", event_type=event_type)

    return JSONResponse(content={"status": "success"}, status_code=200)


# --- Main execution --- (for running with uvicorn)
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
