import io
import logging
import uuid
from collections import OrderedDict
from typing import Any, Dict, List, Optional

import qrcode
from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from firebase_admin import auth as fb_auth
from pydantic import BaseModel, Field

import config
from database import get_store
from errors import StoreError
from notifier import get_notifier
from orchestrator import NotificationStatus, Phase, SubmissionSession
from schemas import DEFAULT_FIELDS, FieldDefinition

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# --- Config ---
MAX_SESSIONS = 1000

app = FastAPI(title="Cafe Booking API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

store = get_store()
notifier = get_notifier()
sessions: "OrderedDict[str, SubmissionSession]" = OrderedDict()


# --- Helpers ---
def get_booking_store():
    return store


def get_confirmation_notifier():
    return notifier


def verify_admin(authorization: Optional[str] = Header(None)) -> Optional[str]:
    """Verify Firebase ID token from Authorization: Bearer <token>. Returns uid."""
    if not authorization:
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(status_code=401, detail="Invalid Authorization header")
    token = parts[1]
    try:
        decoded = fb_auth.verify_id_token(token)
        return decoded.get("uid")
    except Exception as e:
        raise HTTPException(status_code=401, detail=f"Invalid token: {e}")


def register_session(session: SubmissionSession) -> str:
    session_id = uuid.uuid4().hex
    sessions[session_id] = session
    while len(sessions) > MAX_SESSIONS:
        _, evicted = sessions.popitem(last=False)
        evicted.close()
    return session_id


def get_session(session_id: str) -> SubmissionSession:
    session = sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


def qr_url(booking_id: Optional[str]) -> Optional[str]:
    if not booking_id:
        return None
    return f"/api/bookings/{booking_id}/qr"


# --- Models ---
class SubmitRequest(BaseModel):
    data: Dict[str, Any] = Field(default_factory=dict)


class FieldListRequest(BaseModel):
    fields: List[FieldDefinition]


class FieldListResponse(BaseModel):
    fields: List[FieldDefinition]


class SessionStateResponse(BaseModel):
    session_id: str
    phase: Phase
    fields: List[FieldDefinition]
    validation_errors: Dict[str, str] = Field(default_factory=dict)
    booking_id: Optional[str] = None
    notification_status: NotificationStatus = NotificationStatus.NONE
    status_message: Optional[str] = None
    error: Optional[str] = None
    qr_url: Optional[str] = None


def session_response(session_id: str, session: SubmissionSession) -> SessionStateResponse:
    state = session.state
    return SessionStateResponse(
        session_id=session_id,
        phase=state.phase,
        fields=list(state.fields),
        validation_errors=dict(state.validation_errors),
        booking_id=state.booking_id,
        notification_status=state.notification_status,
        status_message=state.status_message,
        error=state.last_error,
        qr_url=qr_url(state.booking_id),
    )


# --- Routes ---
@app.get("/")
def read_root():
    return {"message": "Cafe Booking API running"}


@app.get("/health")
def health_check(
    booking_store=Depends(get_booking_store),
    confirmation_notifier=Depends(get_confirmation_notifier),
):
    return {
        "status": "healthy",
        "service": "booking-intake",
        "store": getattr(booking_store, "name", type(booking_store).__name__),
        "email": "configured" if confirmation_notifier else "disabled",
    }


@app.post("/api/sessions", response_model=SessionStateResponse, status_code=201)
async def create_session(
    booking_store=Depends(get_booking_store),
    confirmation_notifier=Depends(get_confirmation_notifier),
):
    session = SubmissionSession(booking_store, booking_store, confirmation_notifier, DEFAULT_FIELDS)
    session_id = register_session(session)
    state = await session.load()
    if state.phase is Phase.FAILED:
        logger.error(f"Error loading form fields for session {session_id}: {state.error.__cause__}")
    return session_response(session_id, session)


@app.get("/api/sessions/{session_id}", response_model=SessionStateResponse)
def read_session(session_id: str):
    return session_response(session_id, get_session(session_id))


@app.get("/api/sessions/{session_id}/fields", response_model=FieldListResponse)
def read_session_fields(session_id: str):
    return FieldListResponse(fields=get_session(session_id).field_list)


@app.post("/api/sessions/{session_id}/submit", response_model=SessionStateResponse)
async def submit_session(session_id: str, payload: SubmitRequest):
    session = get_session(session_id)
    state = await session.submit(payload.data)
    if state.phase is Phase.FAILED:
        logger.error(f"Error creating booking for session {session_id}: {state.error.__cause__}")
    elif state.notification_status is NotificationStatus.DELIVERY_FAILED:
        logger.warning(f"Booking {state.booking_id} confirmed but email delivery failed")
    return session_response(session_id, session)


@app.delete("/api/sessions/{session_id}", status_code=204)
def close_session(session_id: str):
    session = sessions.pop(session_id, None)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    session.close()
    return Response(status_code=204)


@app.get("/api/bookings/{booking_id}/qr")
def booking_qr(booking_id: str):
    img = qrcode.make(booking_id)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    buf.seek(0)
    return StreamingResponse(buf, media_type="image/png")


@app.get("/api/bookings")
async def list_bookings(
    limit: int = Query(100, ge=1, le=500),
    uid: str = Depends(verify_admin),
    booking_store=Depends(get_booking_store),
):
    try:
        bookings = await booking_store.list_bookings(limit)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {"count": len(bookings), "bookings": bookings}


@app.get("/api/bookings/{booking_id}")
async def read_booking(
    booking_id: str,
    uid: str = Depends(verify_admin),
    booking_store=Depends(get_booking_store),
):
    try:
        booking = await booking_store.get_booking(booking_id)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    if booking is None:
        raise HTTPException(status_code=404, detail="Booking not found")
    return booking


@app.get("/api/form-fields", response_model=FieldListResponse)
async def read_form_fields(uid: str = Depends(verify_admin), booking_store=Depends(get_booking_store)):
    try:
        fields = await booking_store.get_field_definitions()
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return FieldListResponse(fields=DEFAULT_FIELDS if fields is None else fields)


@app.put("/api/form-fields", response_model=FieldListResponse)
async def update_form_fields(
    payload: FieldListRequest,
    uid: str = Depends(verify_admin),
    booking_store=Depends(get_booking_store),
):
    try:
        await booking_store.save_field_definitions(payload.fields)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))
    logger.info(f"Form fields updated by {uid}: {[f.name for f in payload.fields]}")
    return FieldListResponse(fields=payload.fields)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
