import pytest
from PIL import Image

from ditherit.errors import QuantizerFailure
from ditherit.processing.buffer import PixelBuffer
from ditherit.processing.quantizer import DIFFUSION_KERNELS, HistogramQuantizer, get_kernel

BLACK_WHITE = ((0, 0, 0), (255, 255, 255))

KERNEL_NAMES = [
    "FloydSteinberg",
    "Atkinson",
    "JarvisJudiceNinke",
    "Stucki",
    "Burkes",
    "Sierra3",
    "Sierra2",
    "Sierra24A",
    "Fan",
    "ShiauFan",
    "ShiauFan2",
]


def gradient_image(width: int = 16, height: int = 10) -> Image.Image:
    img = Image.new("RGBA", (width, height))
    img.putdata(
        [
            (x * 255 // (width - 1), y * 255 // (height - 1), 128, 255)
            for y in range(height)
            for x in range(width)
        ]
    )
    return img


def test_all_eleven_kernels_are_available():
    assert sorted(DIFFUSION_KERNELS) == sorted(KERNEL_NAMES)


@pytest.mark.parametrize("name", [name for name in KERNEL_NAMES if name != "Atkinson"])
def test_kernels_distribute_the_whole_error(name):
    assert sum(weight for _, _, weight in get_kernel(name)) == pytest.approx(1.0)


def test_atkinson_drops_a_quarter_of_the_error():
    assert sum(weight for _, _, weight in get_kernel("Atkinson")) == pytest.approx(0.75)


def test_kernels_only_push_error_forward():
    for weights in DIFFUSION_KERNELS.values():
        for dx, dy, _ in weights:
            assert dy > 0 or (dy == 0 and dx > 0)


def test_unknown_kernel_fails():
    with pytest.raises(QuantizerFailure):
        get_kernel("Bogus")


@pytest.mark.parametrize("name", KERNEL_NAMES)
@pytest.mark.parametrize("serpentine", [False, True])
def test_reduce_only_emits_palette_colours(name, serpentine):
    img = gradient_image()
    quantizer = HistogramQuantizer(palette=BLACK_WHITE)
    quantizer.sample(img)

    out = quantizer.reduce(PixelBuffer.from_image(img), name, serpentine)

    assert len(out) == 16 * 10 * 4
    colours = {tuple(out[i:i + 3]) for i in range(0, len(out), 4)}
    assert colours <= set(BLACK_WHITE)
    assert {out[i + 3] for i in range(0, len(out), 4)} == {255}


def test_mid_gray_diffuses_into_both_colours():
    img = Image.new("RGBA", (8, 8), (128, 128, 128, 255))
    quantizer = HistogramQuantizer(palette=BLACK_WHITE)
    quantizer.sample(img)

    out = quantizer.reduce(PixelBuffer.from_image(img), "FloydSteinberg", False)

    colours = {tuple(out[i:i + 3]) for i in range(0, len(out), 4)}
    assert colours == set(BLACK_WHITE)


def test_transparent_pixels_are_copied_through():
    img = Image.new("RGBA", (2, 1))
    img.putdata([(12, 34, 56, 0), (250, 250, 250, 255)])
    quantizer = HistogramQuantizer(palette=BLACK_WHITE)
    quantizer.sample(img)

    out = quantizer.reduce(PixelBuffer.from_image(img), "Atkinson", False)

    assert tuple(out[:4]) == (12, 34, 56, 0)
    assert tuple(out[4:]) == (255, 255, 255, 255)


def test_reduce_is_repeatable_across_kernels():
    img = gradient_image()
    buffer = PixelBuffer.from_image(img)
    quantizer = HistogramQuantizer(palette=BLACK_WHITE)
    quantizer.sample(img)

    first = quantizer.reduce(buffer, "Stucki", True)
    quantizer.reduce(buffer, "Burkes", False)
    again = quantizer.reduce(buffer, "Stucki", True)

    assert first == again


def test_derive_palette_needs_a_sample():
    with pytest.raises(QuantizerFailure):
        HistogramQuantizer().derive_palette(4)


def test_derive_palette_ranks_small_images_by_frequency():
    img = Image.new("RGBA", (4, 1))
    img.putdata([(255, 0, 0, 255), (0, 0, 255, 255), (255, 0, 0, 255), (255, 0, 0, 255)])
    quantizer = HistogramQuantizer()
    quantizer.sample(img)

    assert quantizer.derive_palette(8) == ((255, 0, 0), (0, 0, 255))


def test_derive_palette_limits_colour_count():
    quantizer = HistogramQuantizer(colors=4)
    quantizer.sample(gradient_image())

    palette = quantizer.derive_palette(4)

    assert 1 <= len(palette) <= 4
    assert len(set(palette)) == len(palette)


def test_fixed_palette_is_returned_unchanged():
    quantizer = HistogramQuantizer(palette=[(1, 2, 3), (4, 5, 6)])
    quantizer.sample(gradient_image())

    assert quantizer.derive_palette(8) == ((1, 2, 3), (4, 5, 6))


def test_sample_ignores_transparent_pixels():
    img = Image.new("RGBA", (2, 1))
    img.putdata([(1, 1, 1, 0), (9, 9, 9, 255)])
    quantizer = HistogramQuantizer()
    quantizer.sample(img)

    assert dict(quantizer.histogram) == {(9, 9, 9): 1}


def test_colour_count_must_be_positive():
    with pytest.raises(QuantizerFailure):
        HistogramQuantizer(colors=0)


def test_derive_palette_ignores_transparent_background():
    img = Image.new("RGBA", (40, 40), (0, 0, 0, 0))
    img.paste(Image.new("RGBA", (40, 10), (220, 35, 40, 255)), (0, 0))
    img.paste(Image.new("RGBA", (40, 5), (20, 200, 60, 255)), (0, 10))
    img.paste(Image.new("RGBA", (40, 5), (30, 60, 210, 255)), (0, 15))
    quantizer = HistogramQuantizer(colors=2)
    quantizer.sample(img)

    palette = quantizer.derive_palette(2)

    assert len(palette) == 2
    assert (0, 0, 0) not in palette


def test_fully_transparent_image_cannot_derive_a_palette():
    quantizer = HistogramQuantizer()
    quantizer.sample(Image.new("RGBA", (4, 4), (0, 0, 0, 0)))

    with pytest.raises(QuantizerFailure):
        quantizer.derive_palette(4)
