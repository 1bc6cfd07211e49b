from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # === Time normalisation ===
    report_offset_hours: int = -8  # broker time (GMT+2) -> report time (CST)

    # === Trade-log indexing ===
    duplicate_tolerance_ms: int = 2_000  # clock jitter between duplicated rows

    # === Strategy-log fallback matching ===
    fallback_time_tolerance_ms: int = 60_000
    fallback_price_tolerance: float = 0.001  # relative, 0.1%

    # === Signal attribution ===
    signal_lookback_minutes: float = 10.0

    # === Execution ===
    reconcile_max_workers: int = 1  # >1 reconciles pairs on a thread pool

    # === Logging ===
    structured_logging: bool = False
    log_dir: str = ""  # empty -> data/logs/


settings = Settings()
