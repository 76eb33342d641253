import os
from typing import List, Union, Optional
from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Society Console Rent Payments")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api/v1")

    # Base URL the console client talks to (the rent payment router lives under /api)
    API_BASE_URL: str = os.getenv("API_BASE_URL", "http://localhost:8000/api")
    HTTP_TIMEOUT: float = 10.0

    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_KEY: str = os.getenv("SUPABASE_KEY", "")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    SUPABASE_JWT_SECRET: str = os.getenv("SUPABASE_JWT_SECRET", "")

    ENABLE_AUTH: bool = False
    DEFAULT_TENANT_ID: str = "tenant-demo"

    # "static" serves the in-memory data store, "supabase" the Supabase + Razorpay backend
    DATA_MODE: str = "static"

    RAZORPAY_KEY_ID: str = os.getenv("RAZORPAY_KEY_ID", "")
    RAZORPAY_KEY_SECRET: str = os.getenv("RAZORPAY_KEY_SECRET", "")
    RAZORPAY_TEST_MODE: bool = True
    # Test accounts cap single transactions, so sandbox orders charge ₹100
    RAZORPAY_TEST_AMOUNT_PAISE: int = 10000

    CHECKOUT_FACTORY: str = "rentpay.services.sandbox_checkout:SandboxCheckout"
    CHECKOUT_NAME: str = "PG Rent Payment"
    CHECKOUT_THEME_COLOR: str = "#2563eb"

    VERIFY_MAX_RETRIES: int = 3
    VERIFY_SETTLE_DELAY: float = 2.0
    VERIFY_RETRY_DELAY: float = 2.0
    PROCESSING_REFRESH_DELAY: float = 5.0
    CATCHUP_REFRESH_DELAY: float = 15.0

    # CORS
    BACKEND_CORS_ORIGINS: List[Union[str, AnyHttpUrl]] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> Union[List[str], str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",")]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    model_config = SettingsConfigDict(case_sensitive=True)

settings = Settings()
