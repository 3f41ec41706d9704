"""Environment configuration for the booking intake service."""

import os

# --- Firebase ---
FIREBASE_SERVICE_ACCOUNT_JSON = os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON")  # JSON string or path
FIELDS_COLLECTION = os.getenv("FIELDS_COLLECTION", "settings")
FIELDS_DOCUMENT = os.getenv("FIELDS_DOCUMENT", "formFields")
BOOKINGS_COLLECTION = os.getenv("BOOKINGS_COLLECTION", "bookings")

# --- Email (Resend) ---
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
RESEND_API_URL = os.getenv("RESEND_API_URL", "https://api.resend.com/emails")
EMAIL_FROM = os.getenv("EMAIL_FROM", "Cafe Booking <bookings@example.com>")

# --- Application ---
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
