import pytest 

from itsdangerous import URLSafeTimedSerializer
from inventario.core import auth

@pytest.fixture
def serializer():
    auth.SERIALIZER = URLSafeTimedSerializer(b"123", salt="auth-cookie")
    yield auth.SERIALIZER
    auth.SERIALIZER = None

def test_cookie_basic_functionality(serializer):
    """A signed cookie resolves back to the staff user id"""
    user_id = "staff-0001"
    cookie = auth.create_session_cookie(user_id)
    assert auth.verify_session_cookie(cookie) == user_id

def test_tampered_cookie_is_rejected(serializer):
    cookie = auth.create_session_cookie("staff-0001")
    forged = cookie[:-2] + ("AA" if not cookie.endswith("AA") else "BB")
    assert auth.verify_session_cookie(forged) is None

def test_cookie_signed_with_another_seed_is_rejected(serializer):
    other = URLSafeTimedSerializer(b"456", salt="auth-cookie")
    assert auth.verify_session_cookie(other.dumps({"user_id": "staff-0001"})) is None

def test_missing_cookie():
    assert auth.verify_session_cookie(None) is None
    assert auth.verify_session_cookie("") is None

def test_expired_cookie_is_rejected(serializer):
    import unittest.mock as mock
    cookie = auth.create_session_cookie("staff-0001")
    with mock.patch.object(auth, "COOKIE_TTL", -1):
        assert auth.verify_session_cookie(cookie) is None

def test_extract_session_prefers_cookie():
    assert auth.extract_session("from-cookie", "Bearer from-header") == "from-cookie"
    assert auth.extract_session(None, "Bearer from-header") == "from-header"
    assert auth.extract_session(None, "Basic dXNlcjpwYXNz") is None
    assert auth.extract_session(None, None) is None
