from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


class Settings(BaseSettings):
    # Database
    database_url: str = "sqlite:///./unimark.db"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    db_pool_timeout: int = 10  # seconds to wait for a pooled connection
    db_echo: bool = False
    auto_create_schema: Optional[bool] = None  # None: only for sqlite URLs

    # Keycloak (identity provider)
    keycloak_issuer: str = ""  # e.g. https://keycloak.unimark.app/realms/unimark
    keycloak_admin_client_id: str = "admin-cli"
    keycloak_admin_client_secret: str = ""
    keycloak_timeout_seconds: Optional[float] = None  # None keeps httpx defaults

    # Access control
    admin_role: str = "admin"
    protected_roles: str = "admin"
    auth_cache_ttl_sec: int = 60
    auth_cache_max_size: int = 500

    # App
    app_name: str = "unimark-admin"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5012,http://127.0.0.1:3000"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"
    rate_limit_enabled: bool = True

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    def should_create_schema(self) -> bool:
        if self.auto_create_schema is None:
            return self.is_sqlite
        return self.auto_create_schema

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def get_protected_roles(self) -> List[str]:
        return [r.strip() for r in self.protected_roles.split(",") if r.strip()]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
