from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

OverflowPolicy = Literal["truncate", "drift"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    RELAY_HOST: str = "localhost"
    RELAY_PORT: int = 8080
    RELAY_URL: str = "ws://localhost:8080/v1/relay/ws"
    RELAY_OUTBOX_SIZE: int = 32           # per-connection queued payloads before dropping
    RELAY_SEND_TIMEOUT_S: float = 5.0     # a peer slower than this is considered dead

    TEMPO_BPM: float = 100.0
    BEATS_PER_LOOP: int = 16
    RULER_WIDTH_PX: float = 800.0
    SAMPLE_RATE: int = 44100
    LOOP_OVERFLOW_POLICY: OverflowPolicy = "truncate"
    OUTPUT_BLOCKSIZE: int = 1024          # frames per audio callback


settings = Settings()
