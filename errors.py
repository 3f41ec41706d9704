"""Error taxonomy of the booking intake flow."""

from typing import Dict


class BookingFlowError(Exception):
    """Base class for every error raised by the intake flow."""


class StoreError(BookingFlowError):
    """Infrastructure failure reported by the field or booking store."""


class ConfigLoadError(BookingFlowError):
    """The field definitions could not be fetched."""


class ValidationError(BookingFlowError):
    """A submitted record violated one or more field rules."""

    def __init__(self, errors: Dict[str, str]):
        self.errors = dict(errors)
        super().__init__("; ".join(self.errors.values()) or "Invalid submission")


class BookingCreationError(BookingFlowError):
    """The booking store rejected or failed to create a booking."""


class NotificationError(BookingFlowError):
    """The confirmation message could not be delivered."""
