from __future__ import annotations

from dataclasses import dataclass

from PIL import Image


def pixel_count(data: bytes | bytearray) -> int:
    """Number of complete RGBA pixels in ``data``; a trailing partial pixel is ignored."""
    return len(data) // 4


@dataclass
class PixelBuffer:
    """Row-major RGBA raster.

    The buffer belongs to whoever holds it. Once ``data`` has been handed to
    the offload worker the sender must not read or write it again.
    """

    width: int
    height: int
    data: bytearray

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Buffer dimensions must be positive, got {self.width}x{self.height}")
        if len(self.data) != self.width * self.height * 4:
            raise ValueError(
                f"Buffer of {len(self.data)} bytes does not match {self.width}x{self.height} RGBA"
            )
        if not isinstance(self.data, bytearray):
            self.data = bytearray(self.data)

    @classmethod
    def from_image(cls, img: Image.Image) -> "PixelBuffer":
        rgba = img if img.mode == "RGBA" else img.convert("RGBA")
        width, height = rgba.size
        return cls(width, height, bytearray(rgba.tobytes()))

    def to_image(self) -> Image.Image:
        return Image.frombytes("RGBA", (self.width, self.height), bytes(self.data))

    def copy(self) -> "PixelBuffer":
        return PixelBuffer(self.width, self.height, bytearray(self.data))

    @property
    def size(self) -> tuple[int, int]:
        return self.width, self.height
