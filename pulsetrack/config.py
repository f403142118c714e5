"""Application configuration."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """App settings with env var overrides."""

    # Audio
    sample_rate: int = 22050

    # Spectrogram
    win: int = 1024
    hop: int = 512

    # Superflux novelty
    novelty_method: str = "superflux"  # "naive" | "superflux"
    superflux_mu: int = 3
    superflux_gamma: float = 1.0
    superflux_max_win: int = 1  # 1 = no maximum filtering
    mel_min_freq: float = 27.5
    mel_max_freq: float = 16000.0
    mel_bins: int = 138

    # Offline beat tracking
    tempo: float = 120.0
    alpha: float = 100.0

    # Online beat tracking
    online_fac: int = 1
    online_lam: float = 80.0
    online_min_bpm: float = 40.0
    online_max_bpm: float = 200.0
    online_gamma: float = 0.03
    online_initial_max: float = 0.0

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    max_upload_mb: int = 50

    model_config = {"env_prefix": "PULSETRACK_"}


settings = Settings()
