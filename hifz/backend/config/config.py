import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """
    Application settings read directly from environment variables.
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    DB_POOL_MIN_SIZE: int = int(os.environ.get("DB_POOL_MIN_SIZE", 2))
    DB_POOL_MAX_SIZE: int = int(os.environ.get("DB_POOL_MAX_SIZE", 10))
    DB_RETRY_DELAY_SECONDS: int = int(os.environ.get("DB_RETRY_DELAY_SECONDS", 5))
    DB_MAX_RETRIES: int = int(os.environ.get("DB_MAX_RETRIES", 5))

    # Redis: realtime relay between worker processes (optional) and rate limiter storage
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL", "memory://")

    # JWT and password hashing
    SECRET_KEY: str = os.environ.get("SECRET_KEY")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    TOKEN_EXPIRE_DAYS: int = int(os.environ.get("TOKEN_EXPIRE_DAYS", 7))
    BCRYPT_ROUNDS: int = int(os.environ.get("BCRYPT_ROUNDS", 10))

    # Default admin created on first start when no admin exists
    DEFAULT_ADMIN_NAME: str = os.environ.get("DEFAULT_ADMIN_NAME", "Admin")
    DEFAULT_ADMIN_EMAIL: str = os.environ.get("DEFAULT_ADMIN_EMAIL")
    DEFAULT_ADMIN_PASSWORD: str = os.environ.get("DEFAULT_ADMIN_PASSWORD")

    # Server
    ENVIRONMENT: str = os.environ.get("ENVIRONMENT", "production")
    PORT: int = int(os.environ.get("PORT", 5000))
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def cors_origins(self) -> list:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

# Single importable settings instance
settings = Config()
