import pytest
from fastapi import HTTPException
from jose import jwt
from rentpay.core.config import settings
from rentpay.core.security import PG_TENANT_ROLE, verify_token


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    monkeypatch.setattr(settings, "SUPABASE_JWT_SECRET", "test-secret")


def test_token_claims_are_mapped():
    token = jwt.encode({
        "sub": "user-1",
        "email": "asha@example.com",
        "aud": "authenticated",
        "user_metadata": {"name": "Asha", "role": PG_TENANT_ROLE},
    }, "test-secret", algorithm="HS256")

    user = verify_token(token)

    assert user.id == "user-1"
    assert user.name == "Asha"
    assert user.role == PG_TENANT_ROLE


def test_token_with_wrong_secret_is_rejected():
    token = jwt.encode({"sub": "user-1"}, "other-secret", algorithm="HS256")
    with pytest.raises(HTTPException) as excinfo:
        verify_token(token)
    assert excinfo.value.status_code == 401


def test_token_without_subject_is_rejected():
    token = jwt.encode({"email": "x@example.com"}, "test-secret", algorithm="HS256")
    with pytest.raises(HTTPException):
        verify_token(token)
