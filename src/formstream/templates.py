"""System prompts that steer how a form is completed."""

from __future__ import annotations

import dataclasses as dc
import logging

__all__ = ["DEFAULT_TEMPLATE", "FormTemplate", "get_template", "template_names"]

_logger = logging.getLogger(__name__)


@dc.dataclass(frozen=True, slots=True)
class FormTemplate:
    """Named instructions given to the model as its system prompt."""

    name: str
    description: str
    system_prompt: str


_BASE_RULES = (
    "You fill in forms on behalf of a professional using the client"
    " information they provide. Keep the form's structure, headings and field"
    " order exactly as given. Fill every field you can from the client"
    " information. Never invent facts: leave a field as '[to be confirmed]'"
    " when the information is missing. Reply with the completed form only."
)

_TEMPLATES = {
    t.name: t
    for t in (
        FormTemplate(
            name="default",
            description="Complete every field in a neutral, professional tone.",
            system_prompt=_BASE_RULES,
        ),
        FormTemplate(
            name="concise",
            description="Short answers, bullet points where the form allows.",
            system_prompt=(
                f"{_BASE_RULES} Answer each field as briefly as possible and"
                " prefer bullet points over prose."
            ),
        ),
        FormTemplate(
            name="detailed",
            description="Thorough narrative answers for free-text fields.",
            system_prompt=(
                f"{_BASE_RULES} For free-text fields write complete, detailed"
                " paragraphs that draw on all relevant client information."
            ),
        ),
    )
}

DEFAULT_TEMPLATE = _TEMPLATES["default"]


def template_names() -> list[str]:
    """Return the registered template names in a stable order."""
    return sorted(_TEMPLATES)


def get_template(name: str | None) -> FormTemplate:
    """Return the template called *name*, falling back to the default one."""
    if not name:
        return DEFAULT_TEMPLATE
    template = _TEMPLATES.get(name)
    if template is None:
        _logger.warning("unknown form template %r; using default", name)
        return DEFAULT_TEMPLATE
    return template
