"""Template rendering for workflow content.

Single-pass `{{ dotted.path }}` substitution against a nested context. No
loops, conditionals or filters.
"""

import html
import re
from typing import Any

from clinic_api.db.models import Deal, DealStage, Patient
from clinic_api.types import JsonObject

# Variable pattern for template substitution: {{ path.to.value }}
VARIABLE_PATTERN = re.compile(r"{{\s*([^}]+?)\s*}}")
LINE_BREAK_PATTERN = re.compile(r"\r?\n")


def resolve_path(context: Any, path: str) -> Any:
    """Walk a dot-separated path through nested dicts; None when any hop is missing."""
    parts = [part.strip() for part in path.split(".") if part.strip()]
    current = context
    for key in parts:
        if not isinstance(current, dict) or key not in current:
            return None
        current = current[key]
    return current


def render_template(template: str | None, context: JsonObject) -> str:
    """
    Render a template with variable substitution.

    Missing paths, non-object hops and None values all render as "".
    """
    if not template:
        return ""

    def replace_var(match: re.Match) -> str:
        value = resolve_path(context, match.group(1))
        if value is None:
            return ""
        return str(value)

    return VARIABLE_PATTERN.sub(replace_var, template)


def text_to_html(text: str) -> str:
    """Escape plain text and keep its line breaks as <br /> for the HTML body."""
    escaped = html.escape(text, quote=False)
    lines = LINE_BREAK_PATTERN.split(escaped)
    return "<br />".join("<br />" if not line else line for line in lines)


def _stage_context(stage: DealStage | None) -> JsonObject | None:
    if stage is None:
        return None
    return {"id": str(stage.id), "name": stage.name, "type": stage.type}


def build_template_context(
    deal: Deal,
    patient: Patient,
    from_stage: DealStage | None,
    to_stage: DealStage | None,
) -> JsonObject:
    """Project the loaded entities into the read-only context templates render against."""
    return {
        "patient": {
            "id": str(patient.id),
            "first_name": patient.first_name,
            "last_name": patient.last_name,
            "email": patient.email,
            "phone": patient.phone,
        },
        "deal": {
            "id": str(deal.id),
            "title": deal.title,
            "pipeline": deal.pipeline,
            "notes": deal.notes,
        },
        "from_stage": _stage_context(from_stage),
        "to_stage": _stage_context(to_stage),
    }
