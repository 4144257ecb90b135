"""
Application configuration.

Responsibilities:
- Load deployment-specific configuration
- Read environment variables
- Provide a typed, immutable config object

Non-responsibilities:
- No orchestration logic
- No protocol constants (see spec.py)
- No runtime mutation
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from spec import (
    AUTOSAVE_QUIET_PERIOD_MS,
    LIVE_API_VERSION_DEFAULT,
    LIVE_MODEL_DEFAULT,
    LIVE_VOICE_DEFAULT,
)


@dataclass(frozen=True)
class AppConfig:
    """
    Immutable application configuration.

    Constructed once at process startup.
    Passed downward to the workspace and the voice orchestrator.
    """

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    env: str = "dev"
    log_level: str = "INFO"

    # ------------------------------------------------------------------
    # Remote voice session
    # ------------------------------------------------------------------

    gemini_api_key: str | None = None
    live_model: str = LIVE_MODEL_DEFAULT
    live_voice: str = LIVE_VOICE_DEFAULT
    live_api_version: str = LIVE_API_VERSION_DEFAULT

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    data_dir: str = ".bpmn-voice"
    autosave_quiet_ms: int = AUTOSAVE_QUIET_PERIOD_MS

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    enable_json_logs: bool = True

    # ------------------------------------------------------------------
    # Server
    # ------------------------------------------------------------------

    host: str = "127.0.0.1"
    port: int = 8000

    # ------------------------------------------------------------------
    # Factory
    # ------------------------------------------------------------------

    @staticmethod
    def load_from_env() -> AppConfig:
        """
        Load configuration from environment variables.

        Raises:
            ValueError if a numeric variable is malformed.
        """
        return AppConfig(
            env=os.environ.get("ENV", "dev"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),

            gemini_api_key=os.environ.get("GEMINI_API_KEY") or None,
            live_model=os.environ.get("GEMINI_LIVE_MODEL", LIVE_MODEL_DEFAULT),
            live_voice=os.environ.get("GEMINI_VOICE", LIVE_VOICE_DEFAULT),
            live_api_version=os.environ.get("GEMINI_API_VERSION", LIVE_API_VERSION_DEFAULT),

            data_dir=os.environ.get("DATA_DIR", ".bpmn-voice"),
            autosave_quiet_ms=int(
                os.environ.get("AUTOSAVE_QUIET_MS", str(AUTOSAVE_QUIET_PERIOD_MS))
            ),

            enable_json_logs=os.environ.get("ENABLE_JSON_LOGS", "1") == "1",

            host=os.environ.get("HOST", "127.0.0.1"),
            port=int(os.environ.get("PORT", "8000")),
        )
