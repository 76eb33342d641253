from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from rentpay.core.config import settings
from rentpay.core.security import TokenData, verify_token
from rentpay.services.backend import RentBackend
from rentpay.services.static_backend import static_backend

# Optional scheme so the dev server runs without tokens when auth is off
oauth2_scheme_optional = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login",
    auto_error=False
)

_supabase_backend = None

def get_current_user_conditional(token: Optional[str] = Depends(oauth2_scheme_optional)) -> Optional[TokenData]:
    """
    Returns current user if authentication is enabled and token is valid.
    If authentication is disabled via settings, returns None.
    """
    if not settings.ENABLE_AUTH:
        return None

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_token(token)

def get_tenant_id(current_user: Optional[TokenData] = Depends(get_current_user_conditional)) -> str:
    if current_user is None:
        return settings.DEFAULT_TENANT_ID
    return current_user.id

def get_rent_backend() -> RentBackend:
    global _supabase_backend
    if settings.DATA_MODE == "static":
        return static_backend
    if _supabase_backend is None:
        from rentpay.services.payment_service import RazorpayRentBackend
        _supabase_backend = RazorpayRentBackend()
    return _supabase_backend
