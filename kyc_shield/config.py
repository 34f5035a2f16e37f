"""
Central application configuration.

Every tunable value lives here as a typed, documented field.
Any field can be overridden at runtime via an environment variable of the
same name (case-insensitive), e.g.:

    ANALYSIS_TIMEOUT_SEC=30 uvicorn kyc_shield.main:app   # slow network demo
    export CAMERA_INDEX=1                                 # external webcam

A `.env` file at the project root is loaded automatically.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,   # ANALYSIS_TIMEOUT_SEC == analysis_timeout_sec
        extra="ignore",         # silently drop unknown env vars
    )

    # ------------------------------------------------------------------ #
    # Liveness prompt sequence                                            #
    # ------------------------------------------------------------------ #
    liveness_prompts: list[str] = Field(
        ["Look Straight", "Turn Head Left", "Turn Head Right", "Blink Your Eyes", "Smile"],
        description="Instructions shown in order before capture",
    )
    liveness_prompt_dwell_sec: float = Field(
        2.0, description="How long each liveness instruction stays on screen"
    )
    hold_still_prompt: str = Field(
        "Hold Still...", description="Final instruction shown right before capture"
    )
    hold_still_dwell_sec: float = Field(
        1.0, description="Dwell for the final hold-still instruction"
    )

    # ------------------------------------------------------------------ #
    # Camera & capture                                                    #
    # ------------------------------------------------------------------ #
    camera_index: int = Field(0, description="OpenCV device index")
    camera_width: int = Field(1280, description="Requested capture width (px)")
    camera_height: int = Field(720, description="Requested capture height (px)")
    camera_warmup_frames: int = Field(
        3, description="Frames discarded after opening so exposure settles"
    )
    capture_jpeg_quality: int = Field(
        80, description="JPEG quality of the frame sent for analysis (0.8)"
    )

    # ------------------------------------------------------------------ #
    # Analysis                                                            #
    # ------------------------------------------------------------------ #
    analysis_timeout_sec: float = Field(
        20.0, description="Deadline for the verdict call; loser is cancelled"
    )
    blink_rate_min: int = Field(
        10, description="Lower bound of the placeholder blink-rate figure"
    )
    blink_rate_max: int = Field(
        24, description="Upper bound (inclusive) of the placeholder blink-rate figure"
    )

    # ------------------------------------------------------------------ #
    # Gemini Client                                                       #
    # ------------------------------------------------------------------ #
    gemini_verdict_model: str = Field(
        "gemini-3-flash-preview", description="Model used for face-frame verdicts"
    )
    gemini_chat_model: str = Field(
        "gemini-3-flash-preview", description="Model used for the assistant chat"
    )
    gemini_http_timeout_ms: int = Field(
        15_000, description="HTTP client total timeout (ms)"
    )
    gemini_max_retries: int = Field(
        1, description="Attempts on transient errors (1 = single attempt per session)"
    )
    gemini_retry_initial_delay: float = Field(
        1.0, description="First retry delay (seconds)"
    )
    gemini_retry_max_delay: float = Field(
        5.0, description="Max retry back-off delay (seconds)"
    )
    gemini_retry_exp_base: float = Field(
        2.0, description="Exponential back-off multiplier"
    )

    # ------------------------------------------------------------------ #
    # Firestore                                                           #
    # ------------------------------------------------------------------ #
    scans_collection: str = Field("scans", description="Per-user scan records")
    chats_collection: str = Field("chats", description="Per-user chat transcript")
    chat_history_limit: int = Field(
        50, description="Most recent chat messages returned from Firestore"
    )

    # ------------------------------------------------------------------ #
    # Firebase web config (validated for the config notice)               #
    # ------------------------------------------------------------------ #
    firebase_api_key: str = Field("", description="Web API key used by the sign-in popup")
    firebase_auth_domain: str = Field("", description="e.g. my-project.firebaseapp.com")
    firebase_project_id: str = Field("", description="Firebase project id")
    firebase_app_id: str = Field("", description="Web app id, starts with '1:'")

    # ------------------------------------------------------------------ #
    # Rate Limiting                                                       #
    # ------------------------------------------------------------------ #
    rate_limit_request_window_sec: int = Field(
        60, description="Sliding window for per-client request rate (seconds)"
    )
    rate_limit_max_requests: int = Field(
        10, description="Max AI calls allowed within the rate-limit window"
    )
    rate_limit_memory_limit: int = Field(
        1000, description="Max keys before in-memory rate-limit map is pruned"
    )

    # ------------------------------------------------------------------ #
    # Clients & Background Tasks                                          #
    # ------------------------------------------------------------------ #
    activity_log_max_entries: int = Field(
        100, description="Per-client activity log entries kept in memory"
    )
    client_idle_ttl_sec: int = Field(
        1_800, description="30 min; idle clients are dropped and cameras released"
    )
    cleanup_interval_sec: int = Field(
        30, description="How often the periodic client-cleanup task runs (seconds)"
    )


# Single shared instance, import this everywhere.
settings = Settings()
