"""
Submission state machine for one form session.

A session loads the field definitions, gates submissions through the
compiled validator, creates the booking and then attempts the confirmation
email. Only booking creation decides between CONFIRMED and FAILED; a failed
email downgrades the notification status and nothing else.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from compiler import CompiledValidator, compile_fields
from errors import BookingCreationError, BookingFlowError, ConfigLoadError
from schemas import DEFAULT_FIELDS, FieldDefinition

LOAD_FAILED_MESSAGE = "Failed to load form. Please try again later."
BOOKING_FAILED_MESSAGE = "Failed to create booking. Please try again."
EMAIL_FIELD = "email"


class Phase(str, Enum):
    LOADING = "loading"
    READY = "ready"
    SUBMITTING = "submitting"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class NotificationStatus(str, Enum):
    NONE = "none"
    SENT = "sent"
    SKIPPED = "skipped"
    DELIVERY_FAILED = "delivery_failed"


class FieldStore(Protocol):
    async def get_field_definitions(self) -> Optional[List[FieldDefinition]]: ...


class BookingStore(Protocol):
    async def create_booking(self, record: Dict[str, Any]) -> str: ...


class Notifier(Protocol):
    async def send_confirmation(self, record: Dict[str, Any], booking_id: str) -> Optional[bool]: ...


@dataclass(frozen=True)
class SubmissionState:
    phase: Phase = Phase.LOADING
    fields: Sequence[FieldDefinition] = ()
    validation_errors: Mapping[str, str] = field(default_factory=dict)
    booking_id: Optional[str] = None
    notification_status: NotificationStatus = NotificationStatus.NONE
    last_error: Optional[str] = None
    error: Optional[BookingFlowError] = None

    @property
    def status_message(self) -> Optional[str]:
        if self.notification_status is NotificationStatus.SENT:
            return "Confirmation email sent!"
        if self.notification_status is NotificationStatus.DELIVERY_FAILED:
            return "Booking confirmed but email delivery failed."
        return None


def _chained(error: BookingFlowError, cause: BaseException) -> BookingFlowError:
    error.__cause__ = cause
    return error


class SubmissionSession:
    """
    Owns the SubmissionState of one mounted form.

    CONFIRMED and FAILED are terminal; a new attempt needs a new session.
    After close() the results of in-flight store or notifier calls are
    discarded.
    """

    def __init__(
        self,
        field_store: FieldStore,
        booking_store: BookingStore,
        notifier: Optional[Notifier] = None,
        default_fields: Sequence[FieldDefinition] = DEFAULT_FIELDS,
    ):
        self._field_store = field_store
        self._booking_store = booking_store
        self._notifier = notifier
        self._default_fields = tuple(default_fields)
        self._validator = compile_fields(())
        self._state = SubmissionState()
        self._alive = True
        self._loading = False

    @property
    def state(self) -> SubmissionState:
        return self._state

    @property
    def field_list(self) -> List[FieldDefinition]:
        return list(self._state.fields)

    @property
    def validator(self) -> CompiledValidator:
        return self._validator

    @property
    def alive(self) -> bool:
        return self._alive

    def close(self) -> None:
        self._alive = False

    async def load(self) -> SubmissionState:
        if self._state.phase is not Phase.LOADING or self._loading:
            return self._state
        self._loading = True
        try:
            fields = await self._field_store.get_field_definitions()
        except Exception as exc:
            if self._alive:
                self._state = replace(
                    self._state,
                    phase=Phase.FAILED,
                    last_error=LOAD_FAILED_MESSAGE,
                    error=_chained(ConfigLoadError(LOAD_FAILED_MESSAGE), exc),
                )
            return self._state

        if not self._alive:
            return self._state
        fields = tuple(self._default_fields if fields is None else fields)
        self._validator = compile_fields(fields)
        self._state = replace(self._state, phase=Phase.READY, fields=fields)
        return self._state

    async def submit(self, record: Optional[Mapping[str, Any]]) -> SubmissionState:
        # Anything but READY (including a submit already in flight) is ignored.
        if self._state.phase is not Phase.READY or not self._alive:
            return self._state

        result = self._validator.validate(record)
        if not result.ok:
            self._state = replace(self._state, validation_errors=dict(result.errors))
            return self._state

        cleaned = dict(result.cleaned)
        self._state = replace(self._state, phase=Phase.SUBMITTING, validation_errors={})
        try:
            booking_id = await self._booking_store.create_booking(cleaned)
        except Exception as exc:
            if self._alive:
                message = str(exc) or BOOKING_FAILED_MESSAGE
                self._state = replace(
                    self._state,
                    phase=Phase.FAILED,
                    last_error=message,
                    error=_chained(BookingCreationError(message), exc),
                )
            return self._state

        if not self._alive:
            return self._state
        status = await self._notify(cleaned, booking_id)
        if self._alive:
            self._state = replace(
                self._state,
                phase=Phase.CONFIRMED,
                booking_id=booking_id,
                notification_status=status,
            )
        return self._state

    async def _notify(self, record: Dict[str, Any], booking_id: str) -> NotificationStatus:
        email = record.get(EMAIL_FIELD)
        if self._notifier is None or not isinstance(email, str) or not email.strip():
            return NotificationStatus.SKIPPED
        try:
            delivered = await self._notifier.send_confirmation(record, booking_id)
        except Exception:
            return NotificationStatus.DELIVERY_FAILED
        if delivered is False:
            return NotificationStatus.DELIVERY_FAILED
        return NotificationStatus.SENT
