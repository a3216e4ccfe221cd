from .schemas import DomainEvent, EventPayload, GenericPayload, PAYLOAD_REGISTRY

__all__ = ["DomainEvent", "EventPayload", "GenericPayload", "PAYLOAD_REGISTRY"]
