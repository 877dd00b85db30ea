import io
from unittest.mock import AsyncMock, patch

import pytest
from docx import Document

from resume_parser import (
    FALLBACK_CONFIDENCE,
    FALLBACK_PROFILE,
    FallbackResumeParser,
    LLMResumeParser,
    ResumeParseError,
    build_resume_parser,
    extract_text,
    score_confidence,
)
from schemas import ProfileDraft
from settings import Settings


def _empty_draft(**overrides) -> ProfileDraft:
    fields = {
        "name": "",
        "headline": "",
        "bio": "",
        "location": "",
        "skills": [],
        "projects": [],
        "experience": [],
        "education": [],
        "contact": {"email": "", "phone": "", "website": "", "github": "", "linkedin": ""},
    }
    fields.update(overrides)
    return ProfileDraft.model_validate(fields)


# --- Parser selection ---
def test_fallback_mode_wins_even_with_a_key():
    settings = Settings(resume_parser="fallback", openrouter_api_key="or-key")
    assert isinstance(build_resume_parser(settings), FallbackResumeParser)


def test_auto_mode_uses_llm_when_key_present():
    settings = Settings(resume_parser="auto", openrouter_api_key="or-key")
    parser = build_resume_parser(settings)
    assert isinstance(parser, LLMResumeParser)
    assert parser.model == settings.resume_parser_model


@pytest.mark.parametrize("mode", ["auto", "llm"])
def test_missing_key_falls_back(mode):
    settings = Settings(resume_parser=mode, openrouter_api_key=None)
    assert isinstance(build_resume_parser(settings), FallbackResumeParser)


# --- Fallback parser ---
@pytest.mark.asyncio
async def test_fallback_returns_fixed_profile_at_low_confidence():
    draft, confidence = await FallbackResumeParser().extract(b"anything", "resume.pdf")
    assert confidence == FALLBACK_CONFIDENCE == 0.3
    assert draft == FALLBACK_PROFILE
    # Callers get their own copy
    draft.skills.append("Mutated")
    assert "Mutated" not in FALLBACK_PROFILE.skills


# --- Text extraction ---
def test_extract_text_from_plain_text():
    assert extract_text(b"Ada Lovelace\nEngineer", "cv.TXT") == "Ada Lovelace\nEngineer"


def test_extract_text_from_docx():
    doc = Document()
    doc.add_paragraph("Ada Lovelace")
    doc.add_paragraph("Analytical Engine programmer")
    buffer = io.BytesIO()
    doc.save(buffer)

    text = extract_text(buffer.getvalue(), "cv.docx")
    assert "Ada Lovelace" in text
    assert "Analytical Engine programmer" in text


def test_unsupported_extension_gives_none():
    assert extract_text(b"\x89PNG\r\n", "photo.png") is None
    assert extract_text(b"data", "") is None


# --- Confidence ---
def test_complete_profile_scores_the_maximum():
    assert score_confidence(FALLBACK_PROFILE) == 0.95


def test_empty_profile_scores_zero():
    assert score_confidence(_empty_draft()) == 0.0


def test_partial_profile_scores_proportionally():
    draft = _empty_draft(name="Ada", headline="Engineer", skills=["Python"], bio="Builds engines.")
    assert score_confidence(draft) == round(0.95 * 4 / 8, 2)


# --- LLM parser ---
@pytest.mark.asyncio
async def test_llm_parser_scores_model_output():
    draft = _empty_draft(name="Ada", headline="Engineer")
    parser = LLMResumeParser(api_key="or-key", model="test-model")

    with patch("resume_parser.call_llm_for_resume_parsing", new_callable=AsyncMock, return_value=draft) as mock_llm:
        result, confidence = await parser.extract(b"Ada Lovelace\nEngineer", "cv.txt")

    mock_llm.assert_awaited_once()
    assert mock_llm.call_args.kwargs["model"] == "test-model"
    assert result == draft
    assert confidence == score_confidence(draft)


@pytest.mark.asyncio
async def test_llm_parser_falls_back_when_no_text():
    parser = LLMResumeParser(api_key="or-key", model="test-model")

    with patch("resume_parser.call_llm_for_resume_parsing", new_callable=AsyncMock) as mock_llm:
        draft, confidence = await parser.extract(b"\x89PNG\r\n", "photo.png")

    mock_llm.assert_not_awaited()
    assert confidence == FALLBACK_CONFIDENCE
    assert draft == FALLBACK_PROFILE


@pytest.mark.asyncio
async def test_llm_parser_raises_when_model_returns_nothing():
    parser = LLMResumeParser(api_key="or-key", model="test-model")

    with patch("resume_parser.call_llm_for_resume_parsing", new_callable=AsyncMock, return_value=None):
        with pytest.raises(ResumeParseError):
            await parser.extract(b"Ada Lovelace", "cv.md")
