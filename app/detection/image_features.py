"""
Pixel-statistic feature extraction for a single image or video frame.

Nine normalized metrics are computed on a fixed-stride subsample of the image,
so the cost does not grow with resolution. `score_features` turns them into an
additive 0-100 heuristic score with one tagged reason per triggered band.

Public entry points:
  - analyze_pixels: numpy RGB array -> HeuristicResult
  - analyze_image_bytes: encoded image (JPEG/PNG/WebP...) -> HeuristicResult
  - analyze_image: image URL -> HeuristicResult (async, uses the shared session)

Decode and fetch failures never propagate: callers get `default_error_result()`.
"""

import asyncio
import io
import logging

import numpy as np
from PIL import Image

from app.config import settings
from app.integrations import http_client as http_module
from app.schemas.analysis import HeuristicResult, ImageFeatureVector

# Prevent decompression-bomb attacks on untrusted thumbnails and frames
Image.MAX_IMAGE_PIXELS = settings.pil_max_image_pixels

logger = logging.getLogger(__name__)

DEFAULT_ERROR_REASON = "[Error] Image analysis error, default score applied"
NATURAL_RANGE_REASON = "[Result] Analyzed characteristics are within natural range"
NEUTRAL_FEATURE_VALUE = 0.5


def default_error_result() -> HeuristicResult:
    """Fixed fail-open result used whenever an image cannot be fetched or decoded."""
    return HeuristicResult(
        score=50,
        reasons=[DEFAULT_ERROR_REASON],
        features=ImageFeatureVector(
            brightness_uniformity=NEUTRAL_FEATURE_VALUE,
            color_saturation=NEUTRAL_FEATURE_VALUE,
            color_banding=NEUTRAL_FEATURE_VALUE,
            texture_repetition=NEUTRAL_FEATURE_VALUE,
            smoothness=NEUTRAL_FEATURE_VALUE,
            edge_sharpness=NEUTRAL_FEATURE_VALUE,
            noise_level=NEUTRAL_FEATURE_VALUE,
            contrast_variance=NEUTRAL_FEATURE_VALUE,
            color_temperature_consistency=NEUTRAL_FEATURE_VALUE,
        ),
    )


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def pixels_from_buffer(width: int, height: int, channels: int, buffer: bytes) -> np.ndarray:
    """
    Wrap a row-major interleaved 8-bit buffer as an (H, W, 3) int32 array.

    Grayscale (1 or 2 channel) buffers are expanded to RGB; alpha is dropped.
    """
    if width <= 0 or height <= 0 or channels <= 0:
        raise ValueError(f"Invalid image geometry {width}x{height}x{channels}")

    arr = np.frombuffer(buffer, dtype=np.uint8)
    expected = width * height * channels
    if arr.size < expected:
        raise ValueError(f"Pixel buffer too short ({arr.size} < {expected})")

    arr = arr[:expected].reshape(height, width, channels)
    if channels < 3:
        arr = np.repeat(arr[:, :, :1], 3, axis=2)
    return arr[:, :, :3].astype(np.int32)


def decode_image(data: bytes) -> np.ndarray:
    with Image.open(io.BytesIO(data)) as img:
        rgb = img.convert("RGB")
        return np.asarray(rgb, dtype=np.int32)


def _stride(total: int, sample_count: int) -> int:
    return max(1, total // min(sample_count, total))


def _flat_samples(px: np.ndarray, sample_count: int, margin: bool = False):
    """Fixed-stride flat-index sampling. Returns (xs, ys)."""
    h, w = px.shape[:2]
    total = w * h
    step = _stride(total, sample_count)
    idx = np.arange(step, total - step, step) if margin else np.arange(0, total, step)
    return idx % w, idx // w


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def brightness_uniformity(px: np.ndarray) -> float:
    xs, ys = _flat_samples(px, 5000)
    brightness = px[ys, xs].sum(axis=1) / 3.0
    return float(np.clip(1.0 - brightness.std() / 80.0, 0.0, 1.0))


def color_saturation(px: np.ndarray) -> float:
    xs, ys = _flat_samples(px, 3000)
    samples = px[ys, xs]
    hi = samples.max(axis=1).astype(np.float64)
    lo = samples.min(axis=1).astype(np.float64)
    sat = np.divide(hi - lo, hi, out=np.zeros_like(hi), where=hi > 0)
    return float(sat.mean())


def color_banding(px: np.ndarray) -> float:
    """Share of near-flat, constant-slope gradient steps along sampled rows."""
    h, w = px.shape[:2]
    row_step = max(1, h // min(50, h))
    rows = px[0:h:row_step].sum(axis=2)

    steps = np.diff(rows, axis=1) / 3.0
    d1 = steps[:, :-1]
    d2 = steps[:, 1:]
    flat = (np.abs(d1) < 3) & (np.abs(d2) < 3) & (np.abs(d1 - d2) < 1)
    return float((flat.sum(axis=1) / w).mean())


def texture_repetition(px: np.ndarray, block_size: int = 16, max_blocks: int = 10) -> float:
    """
    Fraction of block pairs whose coarse intensity fingerprints match.

    Each block contributes a 4x4 grid of floor((r+g+b)/30) values; two blocks
    match when more than 80% of points agree within 1.
    """
    h, w = px.shape[:2]
    blocks_x = w // block_size
    blocks_y = h // block_size
    if blocks_x < 3 or blocks_y < 3:
        return 0.0

    nbx = min(blocks_x, max_blocks)
    nby = min(blocks_y, max_blocks)
    offsets = np.arange(0, block_size, 4)
    ys = (np.arange(nby)[:, None] * block_size + offsets[None, :]).ravel()
    xs = (np.arange(nbx)[:, None] * block_size + offsets[None, :]).ravel()

    levels = px[np.ix_(ys, xs)].sum(axis=2) // 30
    grid = levels.reshape(nby, len(offsets), nbx, len(offsets))
    signatures = grid.transpose(0, 2, 1, 3).reshape(nby * nbx, -1)

    close = np.abs(signatures[:, None, :] - signatures[None, :, :]) <= 1
    similar = close.mean(axis=2) > 0.8
    i, j = np.triu_indices(len(signatures), k=1)
    if len(i) == 0:
        return 0.0
    return float(similar[i, j].sum() / len(i))


def smoothness(px: np.ndarray) -> float:
    h, w = px.shape[:2]
    xs, ys = _flat_samples(px, 2000, margin=True)
    interior = (xs > 0) & (xs < w - 1) & (ys > 0) & (ys < h - 1)
    xs, ys = xs[interior], ys[interior]
    if len(xs) == 0:
        return 0.0

    center = px[ys, xs]
    total_diff = (
        np.abs(center - px[ys, xs - 1]).sum(axis=1)
        + np.abs(center - px[ys, xs + 1]).sum(axis=1)
        + np.abs(center - px[ys - 1, xs]).sum(axis=1)
        + np.abs(center - px[ys + 1, xs]).sum(axis=1)
    )
    return float(((total_diff / 12.0) < 5).mean())


def edge_sharpness(px: np.ndarray) -> float:
    """Ratio of sharp (>80) to detected (>30) horizontal edges on sampled rows."""
    h, w = px.shape[:2]
    row_step = max(1, h // min(30, h))
    rows = np.arange(1, h - 1, row_step)
    cols = np.arange(1, w - 1, 3)
    if len(rows) == 0 or len(cols) == 0:
        return 0.0

    center = px[np.ix_(rows, cols)]
    diff_left = np.abs(center - px[np.ix_(rows, cols - 1)]).sum(axis=2)
    diff_right = np.abs(center - px[np.ix_(rows, cols + 1)]).sum(axis=2)

    edges = (diff_left > 30) | (diff_right > 30)
    sharp = edges & ((diff_left > 80) | (diff_right > 80))
    total = edges.sum()
    return float(sharp.sum() / total) if total > 0 else 0.0


def noise_level(px: np.ndarray) -> float:
    h, w = px.shape[:2]
    xs, ys = _flat_samples(px, 1500, margin=True)
    inside = (xs > 1) & (xs < w - 2) & (ys > 1) & (ys < h - 2)
    xs, ys = xs[inside], ys[inside]
    if len(xs) == 0:
        return 0.0

    center = px[ys, xs].astype(np.float64)
    neighbor_sum = np.zeros_like(center)
    for dy in (-1, 0, 1):
        for dx in (-1, 0, 1):
            if dx or dy:
                neighbor_sum += px[ys + dy, xs + dx]
    noise = np.abs(center - neighbor_sum / 8.0).sum(axis=1)
    return float(min(noise.mean() / 30.0, 1.0))


def _region_grid(px: np.ndarray, grid: int):
    """Yield (ys, xs) sample coordinates for each cell of a grid x grid split."""
    h, w = px.shape[:2]
    region = min(w, h) // grid
    offsets = np.arange(0, region, 4)
    for ry in range(grid):
        for rx in range(grid):
            ys = np.minimum(ry * region + offsets, h - 1)
            xs = np.minimum(rx * region + offsets, w - 1)
            yield ys, xs


def contrast_variance(px: np.ndarray) -> float:
    if min(px.shape[:2]) // 4 == 0:
        return 0.0

    ranges = []
    for ys, xs in _region_grid(px, 4):
        cell = px[np.ix_(ys, xs)].sum(axis=2) / 3.0
        ranges.append(cell.max() - cell.min())
    return float(min(np.std(ranges) / 128.0, 1.0))


def color_temperature_consistency(px: np.ndarray) -> float:
    if min(px.shape[:2]) // 3 == 0:
        return 1.0

    warmth = []
    for ys, xs in _region_grid(px, 3):
        cell = px[np.ix_(ys, xs)]
        warmth.append((cell[:, :, 0] - cell[:, :, 2]).mean())
    return float(1.0 - min(np.std(warmth) / 50.0, 1.0))


def _safe_metric(name: str, metric, px: np.ndarray) -> float:
    try:
        return metric(px)
    except Exception as e:
        logger.warning(f"[HEURISTIC] Metric '{name}' failed, using neutral value: {e}")
        return NEUTRAL_FEATURE_VALUE


def extract_features(px: np.ndarray) -> ImageFeatureVector:
    return ImageFeatureVector(
        brightness_uniformity=_safe_metric("brightness_uniformity", brightness_uniformity, px),
        color_saturation=_safe_metric("color_saturation", color_saturation, px),
        color_banding=_safe_metric("color_banding", color_banding, px),
        texture_repetition=_safe_metric("texture_repetition", texture_repetition, px),
        smoothness=_safe_metric("smoothness", smoothness, px),
        edge_sharpness=_safe_metric("edge_sharpness", edge_sharpness, px),
        noise_level=_safe_metric("noise_level", noise_level, px),
        contrast_variance=_safe_metric("contrast_variance", contrast_variance, px),
        color_temperature_consistency=_safe_metric(
            "color_temperature_consistency", color_temperature_consistency, px
        ),
    )


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def score_features(f: ImageFeatureVector) -> tuple[int, list[str]]:
    """Additive band scoring. Returns (score clamped to 0-100, reasons)."""
    score = 0
    reasons = []

    if f.brightness_uniformity > 0.7:
        score += 18
        reasons.append("[Brightness] Very uniform brightness distribution - common in AI-generated images")
    elif f.brightness_uniformity > 0.55:
        score += 10
        reasons.append("[Brightness] Brightness distribution is fairly uniform")

    if f.color_saturation > 0.5:
        score += 15
        reasons.append("[Color] Excessively vivid saturation - typical AI over-saturation")
    elif f.color_saturation > 0.35:
        score += 8
        reasons.append("[Color] Color saturation is on the high side")
    elif f.color_saturation < 0.12:
        score += 10
        reasons.append("[Color] Unnaturally low color saturation")

    if f.color_banding > 0.35:
        score += 20
        reasons.append("[Color] Banding detected in color gradients - a common AI artifact")
    elif f.color_banding > 0.2:
        score += 12
        reasons.append("[Color] Color banding detected in some areas")

    if f.texture_repetition > 0.12:
        score += 22
        reasons.append("[Texture] Repeating texture patterns detected - a typical sign of generation")
    elif f.texture_repetition > 0.05:
        score += 14
        reasons.append("[Texture] Similar texture patterns found in some areas")

    if f.smoothness > 0.65:
        score += 20
        reasons.append("[Texture] Unnaturally smooth surfaces - overly clean image")
    elif f.smoothness > 0.45:
        score += 12
        reasons.append("[Texture] Some areas are overly smooth")

    if f.edge_sharpness > 0.55:
        score += 14
        reasons.append("[Texture] Artificially sharp edges detected")
    elif f.edge_sharpness < 0.08 and f.smoothness > 0.35:
        score += 12
        reasons.append("[Texture] Edges are too soft - unnatural blur")

    if f.noise_level < 0.06:
        score += 18
        reasons.append("[Noise] Almost no sensor noise - rare in natural footage")
    elif f.noise_level < 0.12:
        score += 10
        reasons.append("[Noise] Very low noise level")

    if f.contrast_variance < 0.12:
        score += 12
        reasons.append("[Brightness] Regional contrast is very uniform - artificial lighting")
    elif f.contrast_variance < 0.2:
        score += 6
        reasons.append("[Brightness] Little contrast variation between regions")

    if f.color_temperature_consistency > 0.88:
        score += 14
        reasons.append("[Color] Color temperature is too consistent - rare under natural light")
    elif f.color_temperature_consistency > 0.8:
        score += 8
        reasons.append("[Color] High color temperature consistency")

    if not reasons:
        reasons.append(NATURAL_RANGE_REASON)

    return min(100, max(0, score)), reasons


def analyze_pixels(px: np.ndarray) -> HeuristicResult:
    features = extract_features(px)
    score, reasons = score_features(features)
    return HeuristicResult(score=score, reasons=reasons, features=features)


def analyze_image_bytes(data: bytes) -> HeuristicResult:
    """Decode and score an encoded image. Fails open on any error."""
    try:
        px = decode_image(data)
        result = analyze_pixels(px)
    except Exception as e:
        logger.error(f"[HEURISTIC] Image buffer analysis error: {e}")
        return default_error_result()

    logger.info(f"[HEURISTIC] score={result.score} ({px.shape[1]}x{px.shape[0]})")
    return result


async def fetch_image(url: str, max_size: int = settings.max_image_download_bytes) -> bytes:
    async with http_module.request_session() as session:
        async with session.get(url) as response:
            if response.status != 200:
                raise ValueError(f"Failed to fetch image: Status {response.status}")
            content = await response.read()
            if len(content) > max_size:
                raise ValueError(f"Image too large (max {max_size // (1024*1024)}MB)")
            return content


async def analyze_image(url: str) -> HeuristicResult:
    """Fetch an image by URL and score it. Fails open on any error."""
    try:
        content = await fetch_image(url)
    except Exception as e:
        logger.error(f"[HEURISTIC] Image fetch error for {url}: {e}")
        return default_error_result()

    return await asyncio.to_thread(analyze_image_bytes, content)
