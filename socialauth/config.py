from pydantic import SecretStr
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./socialauth.db"

    # Session tokens (no defaults: key material must come from the environment)
    SESSION_SIGNING_KEY: SecretStr
    # Comma-separated keys still accepted for verification while rotating
    SESSION_PREVIOUS_SIGNING_KEYS: SecretStr = SecretStr("")
    JWT_ALGORITHM: str = "HS256"
    SESSION_TTL_HOURS: int = 24
    OAUTH_STATE_TTL_MINUTES: int = 10

    # Credential encryption master key for tokens at rest
    TOKEN_ENCRYPTION_KEY: SecretStr

    # Meta
    META_CLIENT_ID: str = ""
    META_CLIENT_SECRET: SecretStr = SecretStr("")
    META_REDIRECT_URI: str = "http://localhost:8081/oauth/meta/callback"

    # TikTok (TikTok calls the client id a "client key")
    TIKTOK_CLIENT_KEY: str = ""
    TIKTOK_CLIENT_SECRET: SecretStr = SecretStr("")
    TIKTOK_REDIRECT_URI: str = "http://localhost:8081/oauth/tiktok/callback"

    # Snapchat
    SNAPCHAT_CLIENT_ID: str = ""
    SNAPCHAT_CLIENT_SECRET: SecretStr = SecretStr("")
    SNAPCHAT_REDIRECT_URI: str = "http://localhost:8081/oauth/snapchat/callback"

    # Upper bound for every outbound provider call
    PROVIDER_TIMEOUT_SECONDS: float = 5.0

    # Remote account service; empty means credentials go to the local database
    ACCOUNT_SERVICE_URL: str = ""
    ACCOUNT_SERVICE_TIMEOUT_SECONDS: float = 5.0
    # Shared key for POST /accounts; empty disables the check
    INTERNAL_API_KEY: SecretStr = SecretStr("")

    # Front-end
    FRONTEND_URL: str = "http://localhost:3000"
    CORS_ORIGINS: str = "http://localhost:3000"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8081
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def previous_signing_keys(self) -> list[str]:
        raw = self.SESSION_PREVIOUS_SIGNING_KEYS.get_secret_value()
        return [key.strip() for key in raw.split(",") if key.strip()]

settings = Settings()
