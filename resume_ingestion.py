from typing import Any, Sequence

import structlog
from sqlalchemy.orm import Session
from starlette.datastructures import UploadFile

import crud
import schemas
from observability import metric_scope
from outcomes import ErrorKind, Failure, Outcome, Success
from rate_limit import SlidingWindowRateLimiter
from resume_parser import ResumeParser

logger = structlog.get_logger(__name__)

# Below this the builder UI asks the user to review every field
LOW_CONFIDENCE_THRESHOLD = 0.5


def rate_limit_key(user_id: int) -> str:
    return f"resume:{user_id}"


@metric_scope
async def ingest_resume(
    db: Session,
    user_id: int,
    attachments: Sequence[Any],
    limiter: SlidingWindowRateLimiter,
    parser: ResumeParser,
    metrics=None,
) -> "Outcome[schemas.ResumeIngestResponse]":
    """Rate-limit, parse and record one uploaded résumé.

    ``attachments`` are the raw values of the ``file`` form field. Exactly one
    non-empty binary upload is accepted.
    """
    metrics.set_namespace("PortfolioBuilder")
    metrics.set_property("user_id", user_id)
    log = logger.bind(user_id=user_id)

    limit = await limiter.hit(rate_limit_key(user_id))
    if not limit.allowed:
        metrics.put_metric("resume_rate_limited", 1, "Count")
        log.info("Resume upload throttled", retry_after=limit.retry_after)
        return Failure(
            ErrorKind.RATE_LIMITED,
            "Too many uploads, please try again shortly.",
            retry_after=limit.retry_after,
        )

    if not attachments:
        return Failure(ErrorKind.VALIDATION, "File required")
    if len(attachments) > 1:
        return Failure(ErrorKind.VALIDATION, "Upload one file at a time")
    upload = attachments[0]
    if not isinstance(upload, UploadFile):
        return Failure(ErrorKind.VALIDATION, "File required")

    content = await upload.read()
    if not content:
        return Failure(ErrorKind.VALIDATION, "File required")
    filename = upload.filename or "resume"

    draft, confidence = await parser.extract(content, filename)

    record = crud.create_resume_upload(
        db,
        user_id=user_id,
        file_name=filename,
        parsed_data=draft.model_dump(mode="json", by_alias=True),
        confidence=confidence,
    )
    db.commit()

    metrics.put_metric("resume_uploads", 1, "Count")
    if confidence < LOW_CONFIDENCE_THRESHOLD:
        metrics.put_metric("resume_low_confidence", 1, "Count")
    log.info(
        "Resume parsed",
        upload_id=record.id,
        confidence=confidence,
        parser=type(parser).__name__,
        size_bytes=len(content),
    )
    return Success(
        schemas.ResumeIngestResponse(upload_id=record.id, data=draft, confidence=confidence)
    )
