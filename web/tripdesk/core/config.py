import os
from typing import List
from functools import lru_cache


class Settings:
    """Application settings read from the environment"""
    
    # Database
    DB_DSN: str = os.getenv("DB_DSN", "")
    DB_POOL_SIZE: int = int(os.getenv("DB_POOL_SIZE", "5"))
    DB_ECHO: bool = os.getenv("DB_ECHO", "false").lower() == "true"
    
    # Security
    SECRET_KEY: str = os.getenv("SECRET_KEY", "")
    ALGORITHM: str = "HS256"
    CRON_SECRET: str = os.getenv("CRON_SECRET", "")
    
    # CORS
    CORS_ALLOW_ORIGINS: List[str] = []
    CORS_ALLOW_CREDENTIALS: bool = True
    
    # WhatsApp Cloud API
    WHATSAPP_API_URL: str = os.getenv("WHATSAPP_API_URL", "https://graph.facebook.com/v21.0")
    WHATSAPP_PHONE_NUMBER_ID: str = os.getenv("WHATSAPP_PHONE_NUMBER_ID", "")
    WHATSAPP_ACCESS_TOKEN: str = os.getenv("WHATSAPP_ACCESS_TOKEN", "")
    DEFAULT_PHONE_REGION: str = os.getenv("DEFAULT_PHONE_REGION", "IN")
    
    # Rate Limiting
    RATE_LIMIT_DEFAULT: str = os.getenv("RATE_LIMIT_DEFAULT", "100/minute")
    
    # Business Rules
    REFERRAL_REWARD_AMOUNT: int = int(os.getenv("REFERRAL_REWARD_AMOUNT", "250"))
    REFERRAL_CREDIT_VALIDITY_DAYS: int = int(os.getenv("REFERRAL_CREDIT_VALIDITY_DAYS", "365"))
    SIGNUP_BONUS_AMOUNT: int = int(os.getenv("SIGNUP_BONUS_AMOUNT", "100"))
    SIGNUP_BONUS_VALIDITY_DAYS: int = int(os.getenv("SIGNUP_BONUS_VALIDITY_DAYS", "90"))
    ABANDONED_BOOKING_HOURS: int = int(os.getenv("ABANDONED_BOOKING_HOURS", "2"))
    DEFAULT_ADVANCE_PER_TRAVELER: int = int(os.getenv("DEFAULT_ADVANCE_PER_TRAVELER", "2000"))
    MAINTENANCE_LOOP_SECONDS: int = int(os.getenv("MAINTENANCE_LOOP_SECONDS", "900"))
    
    # Message templates
    BRAND_NAME: str = os.getenv("BRAND_NAME", "GoBhraman")
    SUPPORT_PHONE: str = os.getenv("SUPPORT_PHONE", "+91-9415026522")
    SITE_URL: str = os.getenv("SITE_URL", "")
    
    def __init__(self):
        self._validate()
        self._parse_cors_origins()
    
    def _validate(self):
        """Validate required settings"""
        if not self.SECRET_KEY:
            raise ValueError("SECRET_KEY environment variable must be set")
        if not self.DB_DSN:
            raise ValueError("DB_DSN environment variable must be set")
    
    def _parse_cors_origins(self):
        """Parse CORS origins from environment"""
        raw_origins = os.getenv("CORS_ALLOW_ORIGINS") or os.getenv("SITE_URL", "*")
        
        if raw_origins.strip() == "*":
            self.CORS_ALLOW_ORIGINS = ["*"]
            self.CORS_ALLOW_CREDENTIALS = False  # wildcard forbids credentials
        else:
            self.CORS_ALLOW_ORIGINS = [o.strip() for o in raw_origins.split(",") if o.strip()]
            self.CORS_ALLOW_CREDENTIALS = True

    @property
    def whatsapp_configured(self) -> bool:
        return bool(self.WHATSAPP_PHONE_NUMBER_ID and self.WHATSAPP_ACCESS_TOKEN)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
