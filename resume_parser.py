"""Résumé parsers: bytes + filename in, (ProfileDraft, confidence) out.

The ingestion pipeline only sees the ``ResumeParser`` protocol. Which
implementation it gets is decided by ``build_resume_parser`` from settings:

* ``FallbackResumeParser`` returns a fixed example profile at confidence 0.3.
  It never fails; callers treat low confidence as "needs manual review".
* ``LLMResumeParser`` extracts text (PDF, DOCX, plain text) and asks the model
  for a structured profile. Confidence is the share of key fields it filled.
"""
from __future__ import annotations

import io
import zipfile
from pathlib import PurePath
from typing import Optional, Protocol

import fitz
import structlog
from docx import Document

from llm_interaction import call_llm_for_resume_parsing
from schemas import ProfileDraft
from settings import Settings

logger = structlog.get_logger(__name__)

FALLBACK_CONFIDENCE = 0.3
MAX_LLM_CONFIDENCE = 0.95


class ResumeParseError(Exception):
    """The configured extraction service failed to produce a profile."""


class ResumeParser(Protocol):
    async def extract(self, content: bytes, filename: str) -> tuple[ProfileDraft, float]:
        ...


FALLBACK_PROFILE = ProfileDraft.model_validate(
    {
        "name": "Your Name",
        "headline": "Full-stack Developer",
        "bio": "Detail-oriented engineer with a passion for building delightful product experiences.",
        "location": "Remote",
        "skills": ["React", "TypeScript", "Next.js", "Node.js", "PostgreSQL"],
        "projects": [
            {
                "id": "proj-1",
                "title": "AI Portfolio Builder",
                "description": "Multi-tenant platform that generates developer portfolios using AI.",
                "tech": ["Next.js", "Prisma", "Tailwind"],
                "link": "",
                "repo": "",
            }
        ],
        "experience": [
            {
                "id": "exp-1",
                "company": "Acme Corp",
                "role": "Senior Software Engineer",
                "startDate": "2022",
                "endDate": "Present",
                "bullets": [
                    "Led the delivery of a customer-facing portal used by 30k+ users.",
                    "Mentored 5 engineers and standardized the component library.",
                ],
            }
        ],
        "education": [
            {
                "id": "edu-1",
                "school": "Example University",
                "degree": "B.S. Computer Science",
                "startYear": "2014",
                "endYear": "2018",
            }
        ],
        "contact": {
            "email": "you@example.com",
            "phone": "",
            "website": "",
            "github": "",
            "linkedin": "",
        },
    }
)


class FallbackResumeParser:
    """Deterministic stand-in used when no extraction service is configured."""

    async def extract(self, content: bytes, filename: str) -> tuple[ProfileDraft, float]:
        return FALLBACK_PROFILE.model_copy(deep=True), FALLBACK_CONFIDENCE


def extract_text(content: bytes, filename: str) -> Optional[str]:
    """Extract text from PDF, DOCX or plain-text résumés. None when unsupported or unreadable."""
    suffix = PurePath(filename or "").suffix.lower()

    if suffix == ".pdf":
        try:
            with fitz.open(stream=content, filetype="pdf") as doc:
                return "\n".join(page.get_text() for page in doc)
        except (RuntimeError, ValueError) as exc:
            logger.warning("Unreadable PDF resume", filename=filename, exc=str(exc))
            return None

    if suffix == ".docx":
        try:
            doc = Document(io.BytesIO(content))
        except (ValueError, KeyError, zipfile.BadZipFile) as exc:
            logger.warning("Unreadable DOCX resume", filename=filename, exc=str(exc))
            return None
        return "\n".join(para.text for para in doc.paragraphs)

    if suffix in (".txt", ".md"):
        return content.decode("utf-8", errors="replace")

    return None


def score_confidence(draft: ProfileDraft) -> float:
    """Share of the key profile fields that came back populated."""
    checks = [
        draft.name,
        draft.headline,
        draft.bio,
        draft.skills,
        draft.experience,
        draft.education,
        draft.projects,
        draft.contact.email,
    ]
    filled = sum(1 for value in checks if value)
    return round(MAX_LLM_CONFIDENCE * filled / len(checks), 2)


class LLMResumeParser:
    def __init__(self, api_key: str, model: str, fallback: Optional[ResumeParser] = None):
        self.api_key = api_key
        self.model = model
        self.fallback = fallback or FallbackResumeParser()

    async def extract(self, content: bytes, filename: str) -> tuple[ProfileDraft, float]:
        text = extract_text(content, filename)
        if not text or not text.strip():
            logger.info("No extractable resume text; using fallback profile", filename=filename)
            return await self.fallback.extract(content, filename)

        draft = await call_llm_for_resume_parsing(text, api_key=self.api_key, model=self.model)
        if draft is None:
            raise ResumeParseError("Resume parser returned no data")
        return draft, score_confidence(draft)


def build_resume_parser(settings: Settings) -> ResumeParser:
    mode = settings.resume_parser.lower()
    if mode != "fallback" and settings.openrouter_api_key:
        return LLMResumeParser(api_key=settings.openrouter_api_key, model=settings.resume_parser_model)
    if mode == "llm":
        logger.warning("RESUME_PARSER=llm but OPENROUTER_API_KEY is missing; using fallback parser")
    return FallbackResumeParser()
