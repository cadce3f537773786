from __future__ import annotations

import io

from flask import send_file

from ..processing.engine import DitherResult


def send_png(result: DitherResult):
    response = send_file(io.BytesIO(result.data), mimetype=result.mime_type)
    response.headers["X-Dither-Width"] = str(result.width)
    response.headers["X-Dither-Height"] = str(result.height)
    return response
