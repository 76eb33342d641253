from typing import Optional
from jose import jwt, JWTError
from fastapi import HTTPException, status, Depends
from fastapi.security import OAuth2PasswordBearer
from pydantic import BaseModel
from rentpay.core.config import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")

PG_TENANT_ROLE = "PG_TENANT"

class TokenData(BaseModel):
    id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None

def decode_claims(token: str) -> dict:
    # Supabase signs JWTs with the project's JWT Secret; the audience is not checked
    return jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=["HS256"],
        options={"verify_aud": False},
    )

def token_data_from_claims(payload: dict) -> TokenData:
    metadata = payload.get("user_metadata") or {}
    return TokenData(
        id=payload.get("sub"),
        email=payload.get("email"),
        name=metadata.get("name") or payload.get("name"),
        phone=payload.get("phone") or metadata.get("phone"),
        role=metadata.get("role") or payload.get("app_role"),
    )

def verify_token(token: str) -> TokenData:
    try:
        payload = decode_claims(token)
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token_data_from_claims(payload)

def get_current_user(token: str = Depends(oauth2_scheme)) -> TokenData:
    return verify_token(token)
