import secrets
from uuid import uuid4

BOOKING_REFERENCE_BYTES = 5


def generate_booking_reference() -> str:
    """Short human-shareable booking code, e.g. ``3FA9C01B7E``."""
    return secrets.token_hex(BOOKING_REFERENCE_BYTES).upper()


def generate_ticket_code() -> str:
    return f"TKT-{uuid4().hex[:8].upper()}"
