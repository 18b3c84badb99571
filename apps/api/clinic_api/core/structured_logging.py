"""Structured logging helpers (PHI-safe)."""

from typing import Any


def build_log_context(
    *,
    workflow_id: str | None = None,
    enrollment_id: str | None = None,
    deal_id: str | None = None,
    action_type: str | None = None,
    route: str | None = None,
) -> dict[str, Any]:
    """Return a PHI-safe log context dict.

    Only identifiers go in here; patient names, emails and phone numbers never do.
    """
    context: dict[str, Any] = {}
    if workflow_id:
        context["workflow_id"] = str(workflow_id)
    if enrollment_id:
        context["enrollment_id"] = str(enrollment_id)
    if deal_id:
        context["deal_id"] = str(deal_id)
    if action_type:
        context["action_type"] = action_type
    if route:
        context["route"] = route
    return context
