"""Event type → metric type mapping shared by the rollups and live counters."""

import re

EVENT_METRIC_TYPES: dict[str, str] = {
    "application.created": "applications_submitted",
    "application.accepted": "applications_accepted",
    "application.stage_changed": "application_stage_changes",
    "application.submitted_to_company": "applications_submitted_to_company",
    "application.withdrawn": "applications_withdrawn",
    "application.rejected": "applications_rejected",
    "application.hired": "applications_hired",
    "placement.created": "placements_created",
    "placement.activated": "placements_activated",
    "placement.completed": "placements_completed",
    "placement.failed": "placements_failed",
    "placement.disputed": "placements_disputed",
    "job.created": "jobs_created",
    "job.published": "jobs_published",
    "job.closed": "jobs_closed",
    "candidate.created": "candidates_created",
    "candidate.sourced": "candidates_sourced",
    "recruiter.created": "recruiters_joined",
    "recruiter.approved": "recruiters_approved",
    "proposal.created": "proposals_created",
    "proposal.accepted": "proposals_accepted",
    "proposal.declined": "proposals_declined",
}

# Event types the consumer also counts on the live hourly fast path.
LIVE_COUNTER_EVENTS: dict[str, str] = {
    "application.created": "applications_submitted",
    "placement.created": "placements_created",
    "placement.completed": "placements_completed",
    "job.created": "jobs_created",
    "proposal.accepted": "proposals_accepted",
}

_UNSAFE = re.compile(r"[^a-z0-9]+")


def metric_type_for(event_type: str) -> str:
    """Mapped metric type, or the event type sanitized to snake_case."""
    mapped = EVENT_METRIC_TYPES.get(event_type)
    if mapped:
        return mapped
    return _UNSAFE.sub("_", event_type.lower()).strip("_")
