from pathlib import Path

from pydantic_settings import BaseSettings


ENV_PATH = Path(__file__).resolve().parents[2] / ".env"

DAY_MS = 24 * 60 * 60 * 1000


class Settings(BaseSettings):
    app_name: str = "SmartMed Telemed"
    environment: str = "dev"
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8000

    database_url: str = "sqlite:///./telemed.db"

    # "memory" keeps requests in process (lost on restart), "database" uses database_url
    call_request_store: str = "memory"
    cleanup_max_age_ms: int = DAY_MS
    # Pending list ignores calleeId unless this is switched on
    filter_pending_by_callee: bool = False
    room_prefix: str = "SmartMed"
    events_keepalive_seconds: float = 15.0

    cors_origins: str = (
        "http://localhost:5173,http://127.0.0.1:5173,"
        "http://localhost:3000,http://127.0.0.1:3000"
    )

    # Client side
    api_base_url: str = "http://localhost:8000/api/telemed"
    client_storage_path: str = ".telemed_storage.json"
    poll_interval_seconds: float = 3.0
    response_timeout_seconds: float = 30.0
    status_check_interval_seconds: float = 2.0
    jitsi_domain: str = "meet.jit.si"

    class Config:
        env_file = str(ENV_PATH)

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
