"""
Configuration management for the TB12 Membership Backend.
Handles environment variables and application settings for profiles, wallets and NFTs.
"""

from typing import Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "TB12 Membership Backend"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",
        "https://tb12lfg.com",
        "https://www.tb12lfg.com",
    ]
    ALLOWED_HOSTS: List[str] = [
        "localhost",
        "api.tb12lfg.com",
    ]

    # Database - MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "tb12_membership"
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[str] = None

    # MongoDB Environment Variables (from .env)
    MONGO_URI: Optional[str] = None
    MONGO_DB_NAME: Optional[str] = None

    PROFILES_COLLECTION: str = "tb12_profiles"
    NFTS_COLLECTION: str = "nfts"

    # Redis for the persisted wallet cache and wallet challenges
    REDIS_URI: str = "redis://localhost:6379"
    REDIS_DB: int = 0

    # Hosted auth provider (GoTrue compatible)
    AUTH_PROVIDER_URL: str = "http://localhost:9999"
    AUTH_PROVIDER_API_KEY: Optional[str] = None
    AUTH_PROVIDER_TIMEOUT_SECONDS: float = 5.0
    AUTH_TOKEN_CACHE_SECONDS: int = 300
    AUTH_WEBHOOK_SECRET: Optional[str] = None

    # Wallet session cache
    WALLET_CACHE_KEY_PREFIX: str = "tb12_wallet"
    WALLET_CACHE_EXPIRE_DAYS: int = 30
    DEFAULT_WALLET_NAME: str = "Web3 Wallet"

    # Wallet signature challenges
    SIGNATURE_MESSAGE_PREFIX: str = "Sign this message to link your wallet to TB12.LFG"
    NONCE_EXPIRE_MINUTES: int = 10
    REQUIRE_WALLET_CHALLENGE: bool = True

    # Wallet provider bridge (EIP-1193 over JSON-RPC)
    WALLET_PROVIDER_URL: str = "http://localhost:8545"
    WALLET_CONNECT_TIMEOUT_SECONDS: float = 30.0
    WALLET_ACCOUNT_CHECK_TIMEOUT_SECONDS: float = 1.0

    # Membership NFT
    MEMBERSHIP_NFT_NAME: str = "TB12.LFG Membership NFT"
    MEMBERSHIP_NFT_DESCRIPTION: str = "Exclusive membership NFT for TB12.LFG community"
    MEMBERSHIP_NFT_IMAGE_URL: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"

    def get_effective_cors_origins(self) -> List[str]:
        """
        Get effective CORS origins based on environment.
        Local frontend ports are always allowed outside production.
        """
        origins = list(self.ALLOWED_ORIGINS)
        if self.ENVIRONMENT != "production":
            for port in (3000, 5173):
                origin = f"http://localhost:{port}"
                if origin not in origins:
                    origins.append(origin)
        return origins

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS origins from string or list."""
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    @field_validator("ALLOWED_HOSTS", mode="before")
    @classmethod
    def parse_allowed_hosts(cls, v):
        """Parse allowed hosts from string or list."""
        if isinstance(v, str):
            return [host.strip() for host in v.split(",")]
        return v

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment setting."""
        allowed_envs = ["development", "staging", "production"]
        if v not in allowed_envs:
            raise ValueError(f"Environment must be one of {allowed_envs}")
        return v

    @property
    def wallet_cache_expire_seconds(self) -> int:
        return self.WALLET_CACHE_EXPIRE_DAYS * 24 * 60 * 60

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"

    def model_post_init(self, __context: Any) -> None:  # type: ignore[override]
        """Strip trailing slashes so URL joins stay predictable."""
        self.AUTH_PROVIDER_URL = self.AUTH_PROVIDER_URL.rstrip("/")
        self.WALLET_PROVIDER_URL = self.WALLET_PROVIDER_URL.rstrip("/")


# Create global settings instance
settings = Settings()


def get_mongodb_url() -> str:
    """
    Get MongoDB connection URL with authentication if credentials are provided.

    Returns:
        str: MongoDB connection URL
    """
    if settings.MONGO_URI:
        return settings.MONGO_URI

    if settings.MONGODB_USERNAME and settings.MONGODB_PASSWORD:
        base_url = settings.MONGODB_URL.replace("mongodb://", "")
        if "@" not in base_url:
            return f"mongodb://{settings.MONGODB_USERNAME}:{settings.MONGODB_PASSWORD}@{base_url}"

    return settings.MONGODB_URL


def get_mongodb_database_name() -> str:
    """
    Get MongoDB database name.

    Returns:
        str: MongoDB database name
    """
    if settings.MONGO_DB_NAME:
        return settings.MONGO_DB_NAME

    return settings.MONGODB_DATABASE


def is_production() -> bool:
    """Check if running in production environment."""
    return settings.ENVIRONMENT == "production"


def is_development() -> bool:
    """Check if running in development environment."""
    return settings.ENVIRONMENT == "development"
