from datetime import datetime
from typing import Annotated, Any, Literal, Optional
from urllib.parse import urlparse

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


def _http_url_or_blank(value: Optional[str]) -> Optional[str]:
    if value in (None, ""):
        return value
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("must be an http(s) URL or empty")
    return value


OptionalUrl = Annotated[Optional[str], AfterValidator(_http_url_or_blank)]


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case on input, emits camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Users & auth ---
class UserCreate(BaseModel):
    name: str = Field(min_length=2, max_length=60)
    email: EmailStr
    password: str = Field(min_length=6)


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: Optional[str] = None
    email: str


class RegisterResponse(BaseModel):
    user: UserOut


class CurrentUser(UserOut):
    plan: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


# --- Portfolio data (what a portfolio renders) ---
class Project(CamelModel):
    id: str
    title: str = Field(min_length=2)
    description: str = Field(min_length=4)
    tech: list[str]
    link: OptionalUrl = None
    repo: OptionalUrl = None


class Experience(CamelModel):
    id: str
    company: str
    role: str
    start_date: str
    end_date: Optional[str] = None
    bullets: list[str]


class Education(CamelModel):
    id: str
    school: str
    degree: str
    start_year: str
    end_year: Optional[str] = None


class Contact(CamelModel):
    email: EmailStr
    phone: Optional[str] = None
    website: OptionalUrl = None
    github: OptionalUrl = None
    linkedin: OptionalUrl = None


class PortfolioData(CamelModel):
    version: Literal[1] = 1
    name: str = Field(min_length=2)
    headline: str
    bio: str
    location: Optional[str] = None
    skills: list[str]
    projects: list[Project]
    experience: list[Experience]
    education: list[Education]
    contact: Contact


class PortfolioConfig(CamelModel):
    """Render settings. Unknown keys are kept so templates can grow options."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    version: Literal[1] = 1
    primary_color: Optional[str] = None
    accent_color: Optional[str] = None
    sections: Optional[list[str]] = None


class PortfolioPayload(CamelModel):
    portfolio_id: Optional[str] = None
    title: str = Field(min_length=2)
    subdomain: str = Field(min_length=3)
    template_id: str = Field(min_length=1)
    data: PortfolioData
    config: PortfolioConfig

    @field_validator("portfolio_id")
    @classmethod
    def blank_id_means_new(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class PublishRequest(CamelModel):
    portfolio_id: str = Field(min_length=1)


class PortfolioOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    title: str
    subdomain: str
    template_id: str
    data: dict[str, Any]
    config: dict[str, Any]
    published: bool
    published_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class PortfolioEnvelope(BaseModel):
    portfolio: PortfolioOut


class PublicPortfolio(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    title: str
    template_id: str
    data: dict[str, Any]
    config: dict[str, Any]
    published: bool
    updated_at: Optional[datetime] = None


# --- Résumé extraction ---
# Draft models are deliberately loose: every key is present, nothing is
# format-checked. The user fixes low-confidence values before saving.
class DraftProject(CamelModel):
    id: str
    title: str
    description: str
    tech: list[str]
    link: str
    repo: str


class DraftExperience(CamelModel):
    id: str
    company: str
    role: str
    start_date: str
    end_date: str
    bullets: list[str]


class DraftEducation(CamelModel):
    id: str
    school: str
    degree: str
    start_year: str
    end_year: str


class DraftContact(CamelModel):
    email: str
    phone: str
    website: str
    github: str
    linkedin: str


class ProfileDraft(CamelModel):
    name: str
    headline: str
    bio: str
    location: str
    skills: list[str]
    projects: list[DraftProject]
    experience: list[DraftExperience]
    education: list[DraftEducation]
    contact: DraftContact


class ResumeIngestResponse(CamelModel):
    upload_id: str
    data: ProfileDraft
    confidence: float


# --- Templates & billing ---
class TemplateOut(BaseModel):
    id: str
    name: str
    preview: str
    colors: list[str]
    sections: list[str]
    description: str


class CheckoutRequest(BaseModel):
    plan: str


class CheckoutResponse(BaseModel):
    url: str
