from __future__ import annotations

import hashlib
import logging
from typing import Optional, Tuple

from flask import Flask, jsonify, request
from PIL import Image
from werkzeug.exceptions import RequestEntityTooLarge

from .config import PRESET_PALETTES, SETTINGS, configure_logging
from .errors import DitherError
from .infrastructure.cache import IMAGE_CACHE
from .infrastructure.network import FETCHER, decode_image
from .infrastructure.responses import send_png
from .processing.engine import DitherEngine, DitherOptions
from .processing.palette import to_hex
from .processing.quantizer import DIFFUSION_KERNELS

APP_VERSION = "1.0.0"

LOGGER = logging.getLogger(__name__)


def request_values() -> dict:
    """Form fields override query parameters of the same name."""
    values = request.args.to_dict()
    values.update(request.form.to_dict())
    return values


def resolve_width(
    values: dict, source_width: int, max_width: Optional[int] = None
) -> Optional[int]:
    """Requested output width; sources wider than ``max_width`` are scaled down."""
    limit = SETTINGS.max_width if max_width is None else max_width
    raw = values.get("width")
    if raw in (None, ""):
        return limit if source_width > limit else None
    width = int(raw)
    if width <= 0 or width > limit:
        raise ValueError(f"width must be between 1 and {limit}")
    return width


def load_source(values: dict) -> Tuple[Image.Image, str]:
    """Return the uploaded or fetched image together with a key identifying it."""

    upload = request.files.get("image")
    if upload is not None and upload.filename:
        data = upload.read()
        if not data:
            raise ValueError("Uploaded image is empty")
        return decode_image(data), hashlib.sha1(data).hexdigest()

    source_url = values.get("source_url")
    if source_url:
        return FETCHER.fetch_source(source_url), source_url

    raise ValueError("Provide an 'image' upload or a 'source_url'")


def create_app(engine: DitherEngine | None = None) -> Flask:
    configure_logging()
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = SETTINGS.max_upload_bytes
    app.extensions["dither_engine"] = engine or DitherEngine()

    def current_engine() -> DitherEngine:
        return app.extensions["dither_engine"]

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(exc):
        return (f"Image exceeds {SETTINGS.max_upload_bytes} bytes", 413)

    @app.route("/dither", methods=["POST"])
    def dither():
        values = request_values()
        try:
            options = DitherOptions.from_mapping(values)
            src, source_key = load_source(values)
            width = resolve_width(values, src.width)
            result = current_engine().dither(src, options, width, source_key=source_key)
            return send_png(result)
        except ValueError as exc:
            return (f"Bad request: {exc}", 400)
        except RuntimeError as exc:
            if isinstance(exc, DitherError):
                LOGGER.exception("Dithering failed")
                return (f"Dither error: {exc}", 500)
            return (f"Source Error: {exc}", 502)

    @app.route("/palette/analyze", methods=["POST"])
    def analyze_palette():
        values = request_values()
        try:
            colors = int(values.get("colors") or SETTINGS.default_colors)
            if colors < 1:
                raise ValueError("colors must be positive")
            src, _ = load_source(values)
            palette = current_engine().analyze_palette(src, colors)
        except ValueError as exc:
            return (f"Bad request: {exc}", 400)
        except RuntimeError as exc:
            if isinstance(exc, DitherError):
                LOGGER.exception("Palette analysis failed")
                return (f"Dither error: {exc}", 500)
            return (f"Source Error: {exc}", 502)
        return jsonify(palette=[to_hex(color) for color in palette])

    @app.route("/palettes")
    def palettes():
        return jsonify(
            palettes=[
                {"value": value, "name": name, "colors": list(colors)}
                for value, (name, colors) in PRESET_PALETTES.items()
            ]
        )

    @app.route("/kernels")
    def kernels():
        return jsonify(kernels=list(DIFFUSION_KERNELS))

    @app.route("/cache/invalidate", methods=["POST"])
    def invalidate_cache():
        current_engine().invalidate_quantizer_cache()
        source_url = request_values().get("source_url")
        if source_url:
            IMAGE_CACHE.evict(source_url)
        return jsonify(ok=True)

    @app.route("/health")
    def health():
        return jsonify(
            ok=True,
            version=APP_VERSION,
            processing=current_engine().is_processing,
            offload=SETTINGS.offload_enabled,
        )

    return app


# Module-level application for WSGI servers, e.g. ``gunicorn ditherit.app:app``.
app = create_app()
application = app
