import logging
from typing import Optional
from itsdangerous import URLSafeTimedSerializer, BadSignature
from inventario.configs import SEED

logger = logging.getLogger(__name__)

SERIALIZER = None  # Will be initialized lazily
COOKIE_TTL = 604800

def _get_serializer():
    """Get or initialize the SERIALIZER lazily."""
    global SERIALIZER
    if SERIALIZER is None:
        SERIALIZER = URLSafeTimedSerializer(SEED, salt="auth-cookie")
    return SERIALIZER

def create_session_cookie(user_id: str) -> str:
    """Returns a signed session cookie for a staff user."""
    serializer = _get_serializer()
    return serializer.dumps({"user_id": user_id})

def verify_session_cookie(session) -> Optional[str]:
    """Retrieves and verifies the staff user id from a signed cookie."""
    if not session:
        return None
    try:
        serializer = _get_serializer()
        data = serializer.loads(session, max_age=COOKIE_TTL)
    except BadSignature:
        logger.info("Rejected session with a bad or expired signature")
        return None
    if isinstance(data, dict):
        return data.get("user_id")
    return None

def extract_session(session: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Prefers the session cookie, falling back to a Bearer token."""
    if session:
        return session
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None
