from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "API Console"
    environment: str = "dev"
    debug: bool = True
    version: str = "0.1.0"
    log_level: str = "INFO"

    # Console surface
    console_prefix: str = "/__console"
    console_api_key: Optional[str] = None
    enable_auth: bool = True
    session_ttl: float = 1800.0  # seconds
    session_sweep_grace: float = 300.0
    session_header: str = "X-Console-Session"

    # Controller auto-detection / inference
    controllers_path: str = "controllers"
    auto_detect_controllers: bool = True
    inference_timeout: float = 2.0
    request_names: List[str] = ["request", "req"]
    body_accessors: List[str] = ["json", "form", "body"]
    query_accessors: List[str] = ["query_params"]
    path_accessors: List[str] = ["path_params"]
    header_accessors: List[str] = ["headers", "cookies"]
    response_emitters: List[str] = [
        "JSONResponse",
        "ORJSONResponse",
        "Response",
        "HTMLResponse",
        "PlainTextResponse",
    ]
    error_emitters: List[str] = ["HTTPException"]

    # Test invocation forwarding
    invocation_timeout: float = 10.0
    host_base_url: Optional[str] = None
    forward_http2: bool = False

    conflict_history: int = 200
    snapshot_path: str = "data/catalog_snapshot.json"

    model_config = SettingsConfigDict(
        env_prefix="APICONSOLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()

__all__ = ["Settings", "get_settings"]
