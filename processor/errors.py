"""Failure classes of the event pipeline."""


class MalformedMessageError(Exception):
    """Message body is not JSON or not a valid domain event. Never retried."""


class DownstreamWriteError(Exception):
    """Event store or live counter write failed; the message is dead-lettered."""
