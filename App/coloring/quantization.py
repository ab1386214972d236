"""Dominant color extraction.

AIDEV-NOTE: downscale -> sample -> drop background-ish noise -> k-means++ in
sRGB -> hexes ordered by cluster weight with near-duplicates removed.
Seeding uses scikit-learn's kmeans_plusplus with a single local trial (plain
D^2 sampling); the Lloyd iterations are a fixed 8 rounds with no convergence
check so that results only depend on the seed.
"""

import logging

import numpy as np
from sklearn.cluster import kmeans_plusplus
from sklearn.utils import check_random_state

from models import (
    DEFAULT_NUM_COLORS,
    SAMPLE_MAX_WIDTH,
    Cluster,
    DominantColorConfig,
    EmptySampleSetError,
    InvalidInputError,
    PixelBuffer,
    RGBColor,
)

from .color_science import hex_to_rgb, rgb_to_hex
from .utils import fit_to_width, resize_buffer

logger = logging.getLogger(__name__)

MIN_ALPHA = 8  # skip near-transparent pixels
MIN_CLUSTERS = 3
SAMPLES_PER_CLUSTER = 200
LLOYD_ITERATIONS = 8
DUPLICATE_TOLERANCE = 8  # sRGB units


def sample_pixels(buffer: PixelBuffer, step: int = 1) -> np.ndarray:
    """Collect RGB samples on a step grid, skipping alpha < 8.

    Returns:
        (N, 3) float64 array of RGB values
    """
    pixels = buffer.pixels[::step, ::step].reshape(-1, 4)
    opaque = pixels[pixels[:, 3] >= MIN_ALPHA]
    return opaque[:, :3].astype(np.float64)


def filter_samples(samples: np.ndarray) -> np.ndarray:
    """Drop near-white/near-black samples and keep colorful or mid-tone ones.

    AIDEV-NOTE: Paper-white backgrounds and black borders dominate naive
    histograms; this biases the palette toward the subject.
    """
    high = samples.max(axis=1)
    low = samples.min(axis=1)
    saturation = high - low
    near_white = (high > 245) & (low > 245)
    near_black = (high < 10) & (low < 10)
    interesting = (saturation > 8) | ((high > 30) & (high < 230))
    return samples[~near_white & ~near_black & interesting]


def cluster_count(k: int, num_samples: int) -> int:
    """Scale the cluster count down for sparse inputs, never below 3 (or k)."""
    count = min(k, max(MIN_CLUSTERS, num_samples // SAMPLES_PER_CLUSTER))
    # kmeans++ cannot pick more distinct seeds than there are samples
    return max(1, min(count, num_samples))


def kmeans_plus_plus(
    samples: np.ndarray,
    n_clusters: int,
    random_state=None,
    iterations: int = LLOYD_ITERATIONS,
) -> "list[Cluster]":
    """Cluster RGB samples with k-means++ seeding and fixed Lloyd rounds.

    Args:
        samples: (N, 3) RGB samples
        n_clusters: Number of clusters (<= N)
        random_state: None, int seed or numpy RandomState
        iterations: Number of Lloyd iterations to run

    Returns:
        List of Cluster objects in seeding order

    AIDEV-NOTE: A cluster that loses all its samples keeps its previous
    center and weight instead of being re-seeded (no NaN from 0/0).
    """
    if len(samples) == 0:
        return []
    random_state = check_random_state(random_state)
    centers, _ = kmeans_plusplus(
        samples, n_clusters, random_state=random_state, n_local_trials=1
    )
    centers = centers.astype(np.float64)
    weights = np.ones(n_clusters, dtype=np.int64)

    distances = np.empty((len(samples), n_clusters))
    for _ in range(iterations):
        for index, center in enumerate(centers):
            distances[:, index] = np.sum((samples - center) ** 2, axis=1)
        nearest = distances.argmin(axis=1)

        counts = np.bincount(nearest, minlength=n_clusters)
        sums = np.column_stack(
            [np.bincount(nearest, weights=samples[:, c], minlength=n_clusters) for c in range(3)]
        )
        assigned = counts > 0
        centers[assigned] = sums[assigned] / counts[assigned, None]
        weights[assigned] = counts[assigned]

    return [
        Cluster(center=RGBColor(*(float(c) for c in center)), weight=int(weight))
        for center, weight in zip(centers, weights)
    ]


def deduplicate_hexes(hexes: "list[str]", tolerance: int = DUPLICATE_TOLERANCE) -> "list[str]":
    """Keep a hex only if it is the first entry within tolerance of itself.

    AIDEV-NOTE: Each entry is compared against the whole list (including
    entries already dropped), first-occurrence style. Downstream palettes
    depend on this exact behaviour, so keep it even though a greedy
    "compare against kept entries" pass would differ in chained cases.
    """
    colors = [hex_to_rgb(h) for h in hexes]
    limit = tolerance * tolerance

    def close(a: RGBColor, b: RGBColor) -> bool:
        return (a.r - b.r) ** 2 + (a.g - b.g) ** 2 + (a.b - b.b) ** 2 <= limit

    kept = []
    for index, color in enumerate(colors):
        first = next(j for j, other in enumerate(colors) if close(color, other))
        if first == index:
            kept.append(hexes[index])
    return kept


def extract_dominant_colors(
    buffer: PixelBuffer,
    k: int = DEFAULT_NUM_COLORS,
    random_state=None,
    sample_max_width: int = SAMPLE_MAX_WIDTH,
) -> "list[str]":
    """Extract up to max(3, k) dominant colors as "#RRGGBB", most dominant first.

    Args:
        buffer: Decoded RGBA source image
        k: Desired number of colors
        random_state: None (non-deterministic), int seed or numpy RandomState
        sample_max_width: Width the image is downscaled to before sampling

    Raises:
        InvalidInputError: If the buffer is empty/malformed or k < 1
        EmptySampleSetError: If every pixel is transparent or filtered out
    """
    buffer.validate("dominant colors")
    if k < 1:
        raise InvalidInputError("k must be at least 1", stage="dominant colors", value=k)

    width, height = fit_to_width(buffer.width, buffer.height, sample_max_width)
    small = resize_buffer(buffer, width, height)
    samples = filter_samples(sample_pixels(small))
    if len(samples) == 0:
        raise EmptySampleSetError(
            "no pixels left after filtering", stage="dominant colors", value=f"{width}x{height}"
        )

    n_clusters = cluster_count(k, len(samples))
    logger.debug(f"Clustering {len(samples)} samples into {n_clusters} clusters")
    clusters = kmeans_plus_plus(samples, n_clusters, random_state=random_state)

    ranked = sorted(clusters, key=lambda c: c.weight, reverse=True)
    hexes = deduplicate_hexes([rgb_to_hex(c.center) for c in ranked])
    return hexes[: max(MIN_CLUSTERS, k)]


class DominantColorExtractor:
    """Dominant color extractor bound to a DominantColorConfig.

    AIDEV-NOTE: Pass random_state to share one RandomState across calls;
    otherwise config.seed (None = non-deterministic) is used per call.
    """

    def __init__(self, config: DominantColorConfig | None = None, random_state=None):
        self.config = config or DominantColorConfig()
        self.random_state = random_state

    def extract(self, buffer: PixelBuffer, k: int | None = None) -> "list[str]":
        random_state = self.random_state if self.random_state is not None else self.config.seed
        return extract_dominant_colors(
            buffer,
            k=k if k is not None else self.config.num_colors,
            random_state=random_state,
            sample_max_width=self.config.sample_max_width,
        )
