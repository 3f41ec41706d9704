"""
Field definition and booking storage.

FirestoreStore talks to Firebase through firebase-admin; MemoryStore keeps
everything in process and is used when no service account is configured.
"""

import json
import logging
import uuid
from typing import Any, Dict, List, Optional

import firebase_admin
from fastapi.concurrency import run_in_threadpool
from firebase_admin import credentials as fb_credentials
from firebase_admin import firestore
from pydantic import ValidationError as PydanticValidationError

import config
from errors import StoreError
from schemas import Booking, FieldDefinition

logger = logging.getLogger(__name__)


def init_firebase(service_account: Optional[str] = None) -> bool:
    """Initialize the default Firebase app. Returns True when an app is available."""
    if firebase_admin._apps:
        return True
    service_account = service_account or config.FIREBASE_SERVICE_ACCOUNT_JSON
    if not service_account:
        return False
    try:
        # Allow passing either full JSON string or a file path
        if service_account.strip().startswith("{"):
            cred = fb_credentials.Certificate(json.loads(service_account))
        else:
            cred = fb_credentials.Certificate(service_account)
        firebase_admin.initialize_app(cred)
    except (ValueError, OSError) as e:
        logger.error(f"Invalid Firebase service account credentials: {e}")
        return False
    logger.info("Firebase app initialized")
    return True


def parse_field_definitions(raw: Any) -> List[FieldDefinition]:
    if not isinstance(raw, list):
        raise StoreError("Form field configuration is not a list")
    try:
        return [FieldDefinition.model_validate(item) for item in raw]
    except PydanticValidationError as e:
        raise StoreError(f"Invalid form field configuration: {e}") from e


class FirestoreStore:
    """Field definitions in one settings document, bookings in a collection."""

    name = "firestore"

    def __init__(self, client=None):
        self._client = client or firestore.client()

    def _fields_doc(self):
        return self._client.collection(config.FIELDS_COLLECTION).document(config.FIELDS_DOCUMENT)

    async def get_field_definitions(self) -> Optional[List[FieldDefinition]]:
        try:
            snapshot = await run_in_threadpool(self._fields_doc().get)
        except Exception as e:
            logger.error(f"Error loading form fields: {e}")
            raise StoreError("Failed to load form fields") from e
        settings = snapshot.to_dict() if snapshot.exists else None
        if not settings or settings.get("fields") is None:
            return None
        return parse_field_definitions(settings["fields"])

    async def save_field_definitions(self, fields: List[FieldDefinition]) -> None:
        payload = {"fields": [f.model_dump(by_alias=True, exclude_none=True) for f in fields]}
        try:
            await run_in_threadpool(self._fields_doc().set, payload)
        except Exception as e:
            logger.error(f"Error saving form fields: {e}")
            raise StoreError("Failed to save form fields") from e

    async def create_booking(self, record: Dict[str, Any]) -> str:
        booking = Booking(data=record)
        document = {**booking.data, "status": booking.status, "createdAt": firestore.SERVER_TIMESTAMP}
        try:
            _, ref = await run_in_threadpool(
                self._client.collection(config.BOOKINGS_COLLECTION).add, document
            )
        except Exception as e:
            logger.error(f"Error creating booking: {e}")
            raise StoreError("Failed to create booking. Please try again.") from e
        logger.info(f"Booking created: {ref.id}")
        return ref.id

    async def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        try:
            snapshot = await run_in_threadpool(
                self._client.collection(config.BOOKINGS_COLLECTION).document(booking_id).get
            )
        except Exception as e:
            logger.error(f"Error loading booking {booking_id}: {e}")
            raise StoreError("Failed to load booking") from e
        if not snapshot.exists:
            return None
        return {"id": snapshot.id, **snapshot.to_dict()}

    async def list_bookings(self, limit: int = 100) -> List[Dict[str, Any]]:
        """Most recent bookings first."""
        query = (
            self._client.collection(config.BOOKINGS_COLLECTION)
            .order_by("createdAt", direction=firestore.Query.DESCENDING)
            .limit(limit)
        )
        try:
            snapshots = await run_in_threadpool(lambda: list(query.stream()))
        except Exception as e:
            logger.error(f"Error listing bookings: {e}")
            raise StoreError("Failed to load bookings") from e
        return [{"id": s.id, **s.to_dict()} for s in snapshots]


class MemoryStore:
    """In-process store for local development and tests."""

    name = "memory"

    def __init__(self, fields: Optional[List[FieldDefinition]] = None):
        self._fields = list(fields) if fields is not None else None
        self._bookings: Dict[str, Dict[str, Any]] = {}

    async def get_field_definitions(self) -> Optional[List[FieldDefinition]]:
        return list(self._fields) if self._fields is not None else None

    async def save_field_definitions(self, fields: List[FieldDefinition]) -> None:
        self._fields = list(fields)

    async def create_booking(self, record: Dict[str, Any]) -> str:
        booking_id = uuid.uuid4().hex
        booking = Booking(data=record)
        self._bookings[booking_id] = {"id": booking_id, **booking.data, "status": booking.status}
        return booking_id

    async def get_booking(self, booking_id: str) -> Optional[Dict[str, Any]]:
        booking = self._bookings.get(booking_id)
        return dict(booking) if booking else None

    async def list_bookings(self, limit: int = 100) -> List[Dict[str, Any]]:
        return [dict(b) for b in reversed(list(self._bookings.values()))][:limit]


def get_store():
    if init_firebase():
        return FirestoreStore()
    logger.warning("FIREBASE_SERVICE_ACCOUNT_JSON not set; using in-memory store")
    return MemoryStore()
