from __future__ import annotations

from typing import Iterable, List, Sequence, Tuple, Union

from ..config import PRESET_PALETTES
from ..errors import InvalidPalette

Color = Tuple[int, int, int]
Palette = Tuple[Color, ...]
IndexedColor = Tuple[int, int, int, int]

PaletteSpec = Union[str, Sequence[Sequence[int]], Sequence[str], None]


def normalize_palette(colors: Iterable[Sequence[int]]) -> Palette:
    """Return ``colors`` as a tuple of integer RGB triples.

    Extra channels (an alpha byte, for instance) are dropped. An empty result
    is allowed here; callers that need colours check for it themselves.
    """

    palette: List[Color] = []
    for color in colors:
        if len(color) < 3:
            raise InvalidPalette(f"Palette entry {color!r} needs three channels")
        r, g, b = (int(channel) for channel in color[:3])
        if not all(0 <= channel <= 255 for channel in (r, g, b)):
            raise InvalidPalette(f"Palette entry {color!r} is outside 0..255")
        palette.append((r, g, b))
    return tuple(palette)


def parse_hex_color(value: str) -> Color:
    text = value.strip().lstrip("#")
    if len(text) == 3:
        text = "".join(ch * 2 for ch in text)
    if len(text) != 6:
        raise InvalidPalette(f"Invalid hex colour: {value!r}")
    try:
        return int(text[0:2], 16), int(text[2:4], 16), int(text[4:6], 16)
    except ValueError as exc:
        raise InvalidPalette(f"Invalid hex colour: {value!r}") from exc


def to_hex(color: Sequence[int]) -> str:
    return "#{:02x}{:02x}{:02x}".format(*color[:3])


def preset_palette(name: str) -> Palette:
    try:
        _, hexes = PRESET_PALETTES[name.lower()]
    except KeyError as exc:
        raise InvalidPalette(f"Unknown palette preset: {name!r}") from exc
    return tuple(parse_hex_color(value) for value in hexes)


def parse_palette(spec: PaletteSpec) -> Palette:
    """Accept a preset name, ``"#fff,#000"`` style text, hex strings or RGB triples.

    ``None``, ``""`` and ``"auto"`` mean "derive the palette from the image"
    and produce an empty palette.
    """

    if spec is None:
        return ()
    if isinstance(spec, str):
        text = spec.strip()
        if not text or text.lower() in {"auto", "original"}:
            return ()
        if text.lower() in PRESET_PALETTES:
            return preset_palette(text)
        return tuple(parse_hex_color(part) for part in text.split(",") if part.strip())
    entries = list(spec)
    if entries and all(isinstance(entry, str) for entry in entries):
        return tuple(parse_hex_color(entry) for entry in entries)
    return normalize_palette(entries)


def palette_fingerprint(palette: Sequence[Sequence[int]]) -> str:
    return "|".join(",".join(str(channel) for channel in color) for color in palette)


def index_palette(palette: Sequence[Sequence[int]]) -> List[IndexedColor]:
    if not palette:
        raise InvalidPalette("Palette must contain at least one colour")
    return [(index, color[0], color[1], color[2]) for index, color in enumerate(palette)]


def nearest_color(indexed: Sequence[IndexedColor], r: int, g: int, b: int) -> IndexedColor:
    """Closest palette entry by squared RGB distance; the lowest index wins ties."""

    if not indexed:
        raise InvalidPalette("Palette must contain at least one colour")

    closest = indexed[0]
    best_distance = float("inf")
    for entry in indexed:
        _, R, G, B = entry
        distance = (r - R) ** 2 + (g - G) ** 2 + (b - B) ** 2
        if distance < best_distance:
            best_distance = distance
            closest = entry
    return closest
