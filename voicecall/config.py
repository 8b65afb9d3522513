"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables (or a local .env file).
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # ==========================================================================
    # API Keys
    # ==========================================================================
    deepgram_api_key: SecretStr | None = Field(
        default=None, description="Deepgram API key for STT"
    )
    groq_api_key: SecretStr | None = Field(
        default=None, description="Groq API key for reply generation"
    )

    # ==========================================================================
    # Application
    # ==========================================================================
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # ==========================================================================
    # Microphone
    # ==========================================================================
    input_sample_rate: int = Field(
        default=16000,
        description="Microphone sample rate in Hz",
    )
    input_channels: int = Field(default=1, description="Microphone channel count")
    input_block_ms: int = Field(
        default=50,
        description="Duration of one microphone block delivered by the device",
    )
    echo_cancellation: bool = Field(
        default=True,
        description="Request echo cancellation where the device supports it",
    )
    noise_suppression: bool = Field(
        default=True,
        description="Request noise suppression where the device supports it",
    )

    # ==========================================================================
    # Listening / Silence Detection
    # ==========================================================================
    silence_threshold: float = Field(
        default=300.0,
        description="RMS level (16-bit scale) below which audio counts as silence",
    )
    silence_duration_ms: float = Field(
        default=1500.0,
        description="How long silence must persist before the utterance ends",
    )
    silence_sample_interval_ms: float = Field(
        default=50.0,
        description="Interval between silence detector samples",
    )
    max_listen_ms: float = Field(
        default=30000.0,
        description="Hard upper bound on one hands-free listening cycle",
    )
    push_to_talk_max_listen_ms: float = Field(
        default=60000.0,
        description="Hard upper bound on one push-to-talk recording",
    )
    push_to_talk: bool = Field(
        default=False,
        description="Wait for an explicit press before each listening cycle",
    )

    # ==========================================================================
    # Loop Restart Delays
    # ==========================================================================
    empty_restart_delay_ms: float = Field(
        default=500.0,
        description="Delay before listening again after an empty utterance",
    )
    error_retry_delay_ms: float = Field(
        default=1000.0,
        description="Delay before listening again after a recoverable error",
    )
    post_reply_delay_ms: float = Field(
        default=300.0,
        description="Delay before listening again after the reply was spoken",
    )

    # ==========================================================================
    # Engine Timeouts
    # ==========================================================================
    stt_timeout_s: float = Field(default=30.0, description="Max time for one transcription")
    llm_timeout_s: float = Field(default=60.0, description="Max time for one reply")

    # ==========================================================================
    # Engine Configuration
    # ==========================================================================
    deepgram_model: str = Field(default="nova-2", description="Deepgram model name")
    stt_language: str = Field(default="en", description="Spoken language code")
    groq_model: str = Field(
        default="llama-3.3-70b-versatile",
        description="Groq chat model used for replies",
    )
    assistant_prompt: str = Field(
        default=(
            "You are a helpful assistant on a voice call. "
            "Answer in one to three short spoken sentences. "
            "Do not use markdown, lists or code."
        ),
        description="System prompt for the voice assistant",
    )
    max_history: int = Field(
        default=10,
        description="Number of conversation messages kept as reply context",
    )
    edge_tts_voice: str = Field(
        default="en-US-AriaNeural",
        description="Edge TTS voice name",
    )
    tts_rate: float = Field(default=1.0, description="Speech rate multiplier")
    tts_pitch: float = Field(default=1.0, description="Speech pitch multiplier")
    tts_volume: float = Field(default=1.0, description="Speech volume (0.0 to 1.0)")

    # ==========================================================================
    # Derived Properties
    # ==========================================================================
    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
