"""Image differ: pads two screenshots to a common canvas and counts changed pixels.

Colour distance is measured in YIQ space and a pixel that only differs
because of anti-aliasing (a sub-pixel font or edge rendering shift) is
reported separately and left out of the count. A pixel covered by only one
of the two inputs (the padded strip when the page grew or shrank) always
counts as changed.
"""

from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field

import numpy as np
from PIL import Image

logger = logging.getLogger(__name__)

# Largest possible YIQ distance between two colours
MAX_YIQ_DELTA = 35215.0

DIFF_COLOR = (255, 0, 0)
AA_COLOR = (255, 255, 0)
FADE_ALPHA = 0.1

# Rows per slice when computing the colour delta
_BAND_ROWS = 512
# Over-threshold pixels handed to the anti-aliasing check at once
_AA_CHUNK = 1 << 15

# Neighbour offsets as (dx, dy), x-major so ties resolve left-to-right
_OFFSETS = [(dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1) if (dx, dy) != (0, 0)]
_DX = np.array([o[0] for o in _OFFSETS])
_DY = np.array([o[1] for o in _OFFSETS])


@dataclass
class DiffResult:
    width: int
    height: int
    diff_pixels: int
    total_pixels: int
    ratio: float
    aa_pixels: int = 0
    image: Image.Image | None = field(default=None, repr=False)

    def to_png(self) -> bytes:
        if self.image is None:
            raise ValueError("DiffResult has no difference image")
        buf = io.BytesIO()
        self.image.save(buf, format="PNG")
        return buf.getvalue()


def load_png(data: bytes) -> Image.Image:
    """Decode PNG bytes into an RGBA image."""
    with Image.open(io.BytesIO(data)) as img:
        return img.convert("RGBA")


def pad_to_canvas(img: Image.Image, width: int, height: int) -> np.ndarray:
    """Copy an image into the top-left of a zeroed (transparent) RGBA canvas."""
    canvas = np.zeros((height, width, 4), dtype=np.uint8)
    arr = np.asarray(img.convert("RGBA"))
    canvas[: arr.shape[0], : arr.shape[1]] = arr
    return canvas


def _blend_white(rgba: np.ndarray) -> np.ndarray:
    rgba = rgba.astype(np.float64)
    alpha = rgba[..., 3:4] / 255.0
    return 255.0 + (rgba[..., :3] - 255.0) * alpha


def _rgb2y(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.29889531 + rgb[..., 1] * 0.58662247 + rgb[..., 2] * 0.11448223


def _rgb2i(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.59597799 - rgb[..., 1] * 0.27417610 - rgb[..., 2] * 0.32180189


def _rgb2q(rgb: np.ndarray) -> np.ndarray:
    return rgb[..., 0] * 0.21147017 - rgb[..., 1] * 0.52261711 + rgb[..., 2] * 0.31114694


def brightness(rgba: np.ndarray) -> np.ndarray:
    """Luma of pixels after compositing over white."""
    return _rgb2y(_blend_white(rgba))


def color_delta(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    """Signed squared YIQ distance; negative where ``a`` is brighter than ``b``."""
    ra = _blend_white(a)
    rb = _blend_white(b)
    ya, yb = _rgb2y(ra), _rgb2y(rb)
    y = ya - yb
    i = _rgb2i(ra) - _rgb2i(rb)
    q = _rgb2q(ra) - _rgb2q(rb)
    delta = 0.5053 * y * y + 0.299 * i * i + 0.1957 * q * q
    return np.where(ya > yb, -delta, delta)


def _neighbourhood(height: int, width: int, ys: np.ndarray, xs: np.ndarray):
    ny = ys[:, None] + _DY[None, :]
    nx = xs[:, None] + _DX[None, :]
    valid = (nx >= 0) & (nx < width) & (ny >= 0) & (ny < height)
    return np.clip(ny, 0, height - 1), np.clip(nx, 0, width - 1), valid


def _on_edge(height: int, width: int, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    return ((xs == 0) | (xs == width - 1) | (ys == 0) | (ys == height - 1)).astype(np.int64)


def has_many_siblings(img: np.ndarray, ys: np.ndarray, xs: np.ndarray) -> np.ndarray:
    """True where more than two neighbours share the pixel's exact RGBA value."""
    height, width = img.shape[:2]
    ny, nx, valid = _neighbourhood(height, width, ys, xs)
    centre = img[ys, xs]
    same = np.all(img[ny, nx] == centre[:, None, :], axis=2) & valid
    return (same.sum(axis=1) + _on_edge(height, width, ys, xs)) > 2


def antialiased(img: np.ndarray, ys: np.ndarray, xs: np.ndarray, other: np.ndarray) -> np.ndarray:
    """Flag pixels of ``img`` that look like anti-aliased edge pixels.

    A pixel qualifies when it sits between a darker and a brighter
    neighbour, has at most two equal-brightness neighbours, and the darkest
    or brightest neighbour lies inside a flat region in both images.
    """
    if ys.size == 0:
        return np.zeros(0, dtype=bool)
    height, width = img.shape[:2]
    ny, nx, valid = _neighbourhood(height, width, ys, xs)
    delta = brightness(img[ys, xs])[:, None] - brightness(img[ny, nx])

    zeroes = ((delta == 0) & valid).sum(axis=1) + _on_edge(height, width, ys, xs)

    rows = np.arange(ys.size)
    low = np.where(valid, delta, np.inf)
    high = np.where(valid, delta, -np.inf)
    min_idx = low.argmin(axis=1)
    max_idx = high.argmax(axis=1)
    candidate = (zeroes <= 2) & (low[rows, min_idx] < 0) & (high[rows, max_idx] > 0)

    min_y, min_x = ny[rows, min_idx], nx[rows, min_idx]
    max_y, max_x = ny[rows, max_idx], nx[rows, max_idx]
    darkest_flat = has_many_siblings(img, min_y, min_x) & has_many_siblings(other, min_y, min_x)
    brightest_flat = has_many_siblings(img, max_y, max_x) & has_many_siblings(other, max_y, max_x)
    return candidate & (darkest_flat | brightest_flat)


def _faded(rgba: np.ndarray) -> np.ndarray:
    y = _rgb2y(rgba.astype(np.float64))
    val = 255.0 + (y - 255.0) * (FADE_ALPHA * rgba[..., 3] / 255.0)
    return np.clip(np.rint(val), 0, 255).astype(np.uint8)


def diff_images(baseline: Image.Image, current: Image.Image, pixel_threshold: float) -> DiffResult:
    """Compare two images of possibly different size.

    ``pixel_threshold`` is the colour tolerance in [0, 1]; 0 flags any change.
    The ratio is differing pixels over the area of the padded canvas.
    """
    w1, h1 = baseline.size
    w2, h2 = current.size
    width, height = max(w1, w2), max(h1, h2)
    total = width * height

    a = pad_to_canvas(baseline, width, height)
    b = pad_to_canvas(current, width, height)

    covered_a = np.zeros((height, width), dtype=bool)
    covered_a[:h1, :w1] = True
    covered_b = np.zeros((height, width), dtype=bool)
    covered_b[:h2, :w2] = True
    padded = covered_a ^ covered_b

    out = np.empty((height, width, 4), dtype=np.uint8)
    out[..., 3] = 255
    diff_mask = padded.copy()
    aa_mask = np.zeros((height, width), dtype=bool)

    if not np.array_equal(a, b):
        max_delta = MAX_YIQ_DELTA * pixel_threshold * pixel_threshold
        for top in range(0, height, _BAND_ROWS):
            band = slice(top, top + _BAND_ROWS)
            over = np.abs(color_delta(a[band], b[band])) > max_delta
            over &= ~padded[band]
            ys, xs = np.nonzero(over)
            ys += top
            # Neighbour lookups index the full canvas, so chunks need no row margin
            for start in range(0, ys.size, _AA_CHUNK):
                cy = ys[start : start + _AA_CHUNK]
                cx = xs[start : start + _AA_CHUNK]
                is_aa = antialiased(a, cy, cx, b) | antialiased(b, cy, cx, a)
                diff_mask[cy[~is_aa], cx[~is_aa]] = True
                aa_mask[cy[is_aa], cx[is_aa]] = True

    for top in range(0, height, _BAND_ROWS):
        band = slice(top, top + _BAND_ROWS)
        out[band, :, 0:3] = _faded(a[band])[..., None]
    out[aa_mask, 0:3] = AA_COLOR
    out[diff_mask, 0:3] = DIFF_COLOR

    diff_pixels = int(diff_mask.sum())
    ratio = diff_pixels / total if total else 0.0
    logger.debug(
        "Diff %dx%d vs %dx%d -> canvas %dx%d: %d changed, %d anti-aliased (ratio %.5f)",
        w1, h1, w2, h2, width, height, diff_pixels, int(aa_mask.sum()), ratio,
    )
    return DiffResult(
        width=width,
        height=height,
        diff_pixels=diff_pixels,
        total_pixels=total,
        ratio=ratio,
        aa_pixels=int(aa_mask.sum()),
        image=Image.fromarray(out),
    )


def diff_pngs(baseline_png: bytes, current_png: bytes, pixel_threshold: float) -> DiffResult:
    return diff_images(load_png(baseline_png), load_png(current_png), pixel_threshold)
