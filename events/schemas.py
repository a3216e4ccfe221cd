"""Canonical domain event schema and typed payload registry.

Every message on the bus is `{eventType, data, timestamp}`. The `data`
object is resolved to a typed payload model by event type; unknown types
fall back to GenericPayload, which keeps every field.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from aggregation.buckets import to_naive_utc

# First non-null of these fields identifies the event's entity.
ENTITY_ID_FIELDS = (
    "id",
    "placement_id",
    "proposal_id",
    "application_id",
    "job_id",
    "candidate_id",
    "recruiter_id",
    "company_id",
)

# A placement carries up to five recruiter roles; any of them may be set.
RECRUITER_ID_FIELDS = (
    "recruiter_id",
    "candidate_recruiter_id",
    "company_recruiter_id",
    "job_owner_recruiter_id",
    "candidate_sourcer_recruiter_id",
    "company_sourcer_recruiter_id",
)


class EventPayload(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    user_id: str | None = None
    user_role: str | None = None
    organization_id: str | None = None
    company_id: str | None = None
    recruiter_id: str | None = None

    def recruiter_ids(self) -> list[str]:
        """Distinct recruiter ids mentioned anywhere in the payload, in field order."""
        fields = self.model_dump()
        seen: list[str] = []
        for name in RECRUITER_ID_FIELDS:
            value = fields.get(name)
            if value and str(value) not in seen:
                seen.append(str(value))
        return seen


class GenericPayload(EventPayload):
    pass


class ApplicationPayload(EventPayload):
    application_id: str | None = None
    job_id: str | None = None
    candidate_id: str | None = None
    candidate_recruiter_id: str | None = None
    company_recruiter_id: str | None = None
    stage: str | None = None
    previous_stage: str | None = None


class PlacementPayload(EventPayload):
    placement_id: str | None = None
    application_id: str | None = None
    job_id: str | None = None
    candidate_id: str | None = None
    candidate_recruiter_id: str | None = None
    company_recruiter_id: str | None = None
    job_owner_recruiter_id: str | None = None
    candidate_sourcer_recruiter_id: str | None = None
    company_sourcer_recruiter_id: str | None = None
    placement_fee: float | None = None
    salary: float | None = None


class JobPayload(EventPayload):
    job_id: str | None = None
    job_owner_recruiter_id: str | None = None
    status: str | None = None


class CandidatePayload(EventPayload):
    candidate_id: str | None = None
    candidate_recruiter_id: str | None = None


class RecruiterPayload(EventPayload):
    status: str | None = None


class ProposalPayload(EventPayload):
    proposal_id: str | None = None
    job_id: str | None = None
    candidate_id: str | None = None
    application_id: str | None = None


KNOWN_EVENT_TYPES: dict[str, tuple[str, ...]] = {
    "application": (
        "created", "accepted", "stage_changed", "submitted_to_company",
        "withdrawn", "rejected", "hired",
    ),
    "placement": ("created", "activated", "completed", "failed", "disputed"),
    "job": ("created", "updated", "published", "closed", "status_changed"),
    "candidate": ("created", "updated", "sourced", "invited", "consent_given"),
    "recruiter": ("created", "approved", "suspended", "profile_updated"),
    "proposal": ("created", "accepted", "declined", "timeout"),
}

_FAMILY_PAYLOADS: dict[str, type[EventPayload]] = {
    "application": ApplicationPayload,
    "placement": PlacementPayload,
    "job": JobPayload,
    "candidate": CandidatePayload,
    "recruiter": RecruiterPayload,
    "proposal": ProposalPayload,
}

PAYLOAD_REGISTRY: dict[str, type[EventPayload]] = {
    f"{family}.{action}": _FAMILY_PAYLOADS[family]
    for family, actions in KNOWN_EVENT_TYPES.items()
    for action in actions
}


class DomainEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    event_type: str = Field(alias="eventType", min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)

    @property
    def entity_type(self) -> str:
        return entity_type_of(self.event_type)

    def payload(self) -> EventPayload:
        """Typed payload for known types; GenericPayload when unknown or mistyped."""
        model = PAYLOAD_REGISTRY.get(self.event_type, GenericPayload)
        try:
            return model.model_validate(self.data)
        except ValidationError:
            return GenericPayload.model_validate(_loose_fields(self.data))

    def to_wire(self) -> dict[str, Any]:
        return {
            "eventType": self.event_type,
            "data": self.data,
            "timestamp": self.timestamp.isoformat() + "Z",
        }


def entity_type_of(event_type: str) -> str:
    return event_type.split(".", 1)[0]


def entity_id_of(data: dict[str, Any]) -> str | None:
    for name in ENTITY_ID_FIELDS:
        value = data.get(name)
        if value is not None:
            return str(value)
    return None


def _loose_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Drop shared id fields whose values cannot be read as strings; keep everything else."""
    loose = {}
    for name, value in data.items():
        if name in EventPayload.model_fields and not _scalar_id(value):
            continue
        loose[name] = value
    return loose


def _scalar_id(value: Any) -> bool:
    if value is None or isinstance(value, str):
        return True
    return isinstance(value, (int, float)) and not isinstance(value, bool)
