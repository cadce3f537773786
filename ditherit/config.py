import logging
import os
from dataclasses import dataclass
from typing import Dict, Tuple


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DitherSettings:
    port: int
    log_level: str
    offload_enabled: bool
    offload_timeout: float
    default_mode: str
    default_kernel: str
    default_bayer_size: int
    default_colors: int
    max_width: int
    max_upload_bytes: int
    source_timeout: float
    retries: int
    cache_ttl: float

    @classmethod
    def from_env(cls) -> "DitherSettings":
        return cls(
            port=int(os.getenv("PORT", "5500")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            offload_enabled=_env_bool("OFFLOAD_ENABLED", "true"),
            offload_timeout=float(os.getenv("OFFLOAD_TIMEOUT", "10.0")),
            default_mode=os.getenv("DITHER_MODE", "diffusion").lower(),
            default_kernel=os.getenv("DITHER_KERNEL", "FloydSteinberg"),
            default_bayer_size=int(os.getenv("BAYER_SIZE", "4")),
            default_colors=int(os.getenv("PALETTE_COLORS", "8")),
            max_width=int(os.getenv("MAX_WIDTH", "5000")),
            max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(int(2.5 * 1024 * 1024)))),
            source_timeout=float(os.getenv("SOURCE_TIMEOUT", "10.0")),
            retries=int(os.getenv("SOURCE_RETRIES", "2")),
            cache_ttl=float(os.getenv("CACHE_TTL", "300")),
        )


SETTINGS = DitherSettings.from_env()


def configure_logging() -> logging.Logger:
    logging.basicConfig(level=SETTINGS.log_level)
    return logging.getLogger("ditherit")


PRESET_PALETTES: Dict[str, Tuple[str, Tuple[str, ...]]] = {
    "blackwhite": ("Black & White", ("#ffffff", "#000000")),
    "redmono": ("Red Monochrome", ("#ffe3db", "#4f1403")),
    "greenmono": ("Green Monochrome", ("#eeffdb", "#1d3801")),
    "bluemono": ("Blue Monochrome", ("#dbf9ff", "#02474f")),
    "yellowmono": ("Yellow Monochrome", ("#fffedb", "#303001")),
    "red": ("Red", ("#ffffff", "#f46842", "#aa2f0d", "#000000")),
    "green": ("Green", ("#ffffff", "#c4f441", "#6da90c", "#000000")),
    "blue": ("Blue", ("#ffffff", "#41e2f4", "#0c9fa9", "#000000")),
    "yellow": ("Yellow", ("#ffffff", "#f4eb41", "#a9a40c", "#000000")),
    "cmyk": ("CMYK", ("#000000", "#ffff00", "#00ffff", "#ff00ff", "#ffffff")),
    "rgby": ("RGBY", ("#ff0000", "#00ff00", "#0000ff", "#ffff00")),
    "gameboy": ("Game Boy DMG-01", ("#cadc9f", "#0f380f", "#306230", "#8bac0f", "#9bbc0f")),
    "purplegreen": ("Purple & Green", ("#76c066", "#ad2bbb")),
    "yellowred": ("Yellow & Red", ("#ffee2c", "#e20023")),
    "blueyellow": ("Blue & Yellow", ("#134e87", "#fff585")),
    "bwr": ("Black White Red", ("#ffffff", "#000000", "#ff0000")),
}
