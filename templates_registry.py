"""Portfolio templates the builder can render.

Rendering lives in the frontend; the API only needs to know which template
ids exist and which sections each one can show.
"""
from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class Template:
    id: str
    name: str
    preview: str
    colors: tuple[str, ...]
    sections: tuple[str, ...]
    description: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["colors"] = list(self.colors)
        data["sections"] = list(self.sections)
        return data


TEMPLATES: tuple[Template, ...] = (
    Template(
        id="modern",
        name="Modern Gradient",
        preview="/templates/modern.png",
        colors=("#0ea5e9", "#22d3ee", "#6366f1"),
        sections=("about", "skills", "projects", "contact"),
        description="Bold gradients, large cards, and skill badges.",
    ),
    Template(
        id="minimal",
        name="Minimal Monotype",
        preview="/templates/minimal.png",
        colors=("#0f172a", "#1e293b", "#334155"),
        sections=("about", "projects", "contact"),
        description="Editorial typography with ultra-clean layout.",
    ),
    Template(
        id="professional",
        name="Professional Split",
        preview="/templates/professional.png",
        colors=("#0f172a", "#2dd4bf", "#f97316"),
        sections=("hero", "experience", "projects"),
        description="Executive summary with career timeline.",
    ),
)

_BY_ID = {template.id: template for template in TEMPLATES}


def get_template(template_id: str) -> Optional[Template]:
    return _BY_ID.get(template_id)


def exists(template_id: str) -> bool:
    return template_id in _BY_ID


def list_templates() -> list[dict]:
    return [template.to_dict() for template in TEMPLATES]
