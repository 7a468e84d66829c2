from __future__ import annotations

import os
from dataclasses import dataclass


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    try:
        value = int(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    try:
        value = float(raw) if raw is not None else default
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


@dataclass(frozen=True)
class Settings:
    font_dir: str = "/usr/share/fonts/truetype/dejavu"
    default_font: str = "DejaVuSans.ttf"
    site_root: str = "/srv"
    base_url: str = "https://localhost"
    image_cache_size: int = 32
    image_cache_ttl: float = 45.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            font_dir=os.getenv("CERTLAYOUT_FONT_DIR", cls.font_dir),
            default_font=os.getenv("CERTLAYOUT_DEFAULT_FONT", cls.default_font),
            site_root=os.getenv("SITE_ROOT", cls.site_root) or cls.site_root,
            base_url=os.getenv("CERTLAYOUT_BASE_URL", cls.base_url).rstrip("/"),
            image_cache_size=_env_int("CERTLAYOUT_IMAGE_CACHE_SIZE", cls.image_cache_size),
            image_cache_ttl=_env_float("CERTLAYOUT_IMAGE_CACHE_TTL", cls.image_cache_ttl),
            log_level=os.getenv("CERTLAYOUT_LOG_LEVEL", cls.log_level),
        )

    @property
    def default_font_path(self) -> str:
        if os.path.isabs(self.default_font):
            return self.default_font
        return os.path.join(self.font_dir, self.default_font)

    @property
    def certificates_root(self) -> str:
        return os.path.join(self.site_root, "certificates")
