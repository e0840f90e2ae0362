from io import BytesIO

import numpy as np
import pytest
from PIL import Image, UnidentifiedImageError

from conftest import make_png
from sahaya.services import enhance


def _decode(data: bytes) -> Image.Image:
    img = Image.open(BytesIO(data))
    img.load()
    return img


def test_large_image_is_bounded_and_keeps_aspect_ratio():
    result = enhance.enhance_image(make_png(3200, 1000), max_dim=1600)
    img = _decode(result.data)
    assert img.size == (1600, 500)
    assert (result.width, result.height) == img.size
    assert img.format == "PNG"


def test_portrait_image_is_bounded_on_height():
    img = _decode(enhance.enhance_image(make_png(900, 2700), max_dim=1800).data)
    assert max(img.size) <= 1800
    assert img.size == (600, 1800)


def test_small_image_is_not_upscaled():
    img = _decode(enhance.enhance_image(make_png(120, 80)).data)
    assert img.size == (120, 80)


def test_output_is_grayscale():
    img = _decode(enhance.enhance_image(make_png(40, 40, color=(255, 0, 0))).data)
    assert img.mode == "L"


@pytest.mark.parametrize("width,height,max_dim", [(1000, 333, 500), (7, 3000, 1600), (1599, 1601, 1600)])
def test_bounded_size_preserves_ratio_within_rounding(width, height, max_dim):
    w, h = enhance.bounded_size(width, height, max_dim)
    assert max(w, h) <= max_dim
    assert w >= 1 and h >= 1
    assert abs(w / h - width / height) <= (width / height) * 0.02 + 1 / h


@pytest.mark.parametrize("contrast,brightness", [(1.12, -6), (0.0, 0), (50.0, 300), (-3.0, -500), (1.0, 0)])
def test_adjust_contrast_is_clamped_and_deterministic(contrast, brightness):
    values = np.arange(256, dtype=np.float32)
    first = enhance.adjust_contrast(values, contrast, brightness)
    second = enhance.adjust_contrast(values, contrast, brightness)
    assert first.min() >= 0 and first.max() <= 255
    assert np.array_equal(first, second)


def test_adjust_contrast_formula():
    out = enhance.adjust_contrast(np.array([128, 0, 255]), 1.12, -6)
    assert out.tolist() == [122, 0, 255]


def test_sharpen_leaves_border_untouched():
    gray = np.full((5, 5), 100.0, dtype=np.float32)
    gray[2, 2] = 200.0
    out = enhance.sharpen(gray)
    assert np.array_equal(out[0, :], gray[0, :])
    assert np.array_equal(out[-1, :], gray[-1, :])
    assert np.array_equal(out[:, 0], gray[:, 0])
    assert np.array_equal(out[:, -1], gray[:, -1])
    # centre: 5*200 - 4*100 = 600, clamped
    assert out[2, 2] == 255
    # neighbour: 5*100 - 200 - 3*100 = 0
    assert out[1, 2] == 0


def test_sharpen_on_uniform_image_is_identity():
    gray = np.full((6, 8), 77.0, dtype=np.float32)
    assert np.array_equal(enhance.sharpen(gray), gray)


def test_sharpen_failure_degrades_to_grayscale(monkeypatch):
    def boom(gray):
        raise RuntimeError("kernel exploded")

    monkeypatch.setattr(enhance, "sharpen", boom)
    result = enhance.enhance_image(make_png(50, 30))
    assert _decode(result.data).size == (50, 30)


def test_undecodable_image_raises():
    with pytest.raises(UnidentifiedImageError):
        enhance.enhance_image(b"definitely not an image")


def test_final_contrast_pivots_at_mid_gray():
    data = make_png(20, 20, color=(200, 200, 200))
    out = enhance.enhance_image(data, contrast=1.0, brightness=0, final_contrast=1.10, apply_sharpen=False)
    pixels = np.asarray(_decode(out.data))
    # (200 - 128) * 1.10 + 128
    assert np.all(pixels == 207)


def test_final_contrast_composes_with_first_pass():
    data = make_png(20, 20, color=(60, 60, 60))
    out = enhance.enhance_image(data, contrast=1.12, brightness=-6, final_contrast=1.10, apply_sharpen=False)
    first = enhance.adjust_contrast(np.array([60]), 1.12, -6)
    expected = enhance.adjust_contrast(first, 1.10, 0)
    assert np.all(np.asarray(_decode(out.data)) == expected[0])
