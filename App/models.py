"""Data models, constants and errors for the coloring book maker."""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from pathlib import Path

import numpy as np

# AIDEV-NOTE: Defaults tuned against printed pages - keep in sync with CLI help
DEFAULT_INTENSITY = 34  # recommended 30-38
DEFAULT_MAX_OUTPUT_WIDTH = 900  # px
DEFAULT_RANGE_SIGMA = 18.0  # intensity units
DEFAULT_NUM_COLORS = 10
SAMPLE_MAX_WIDTH = 480  # px, dominant color sampling only
MAX_TOP_K = 5

# Configuration file path
CONFIG_FILE = Path.home() / ".coloring_book_config.json"


# --- Errors ---


class ColoringError(Exception):
    """Base class for all errors raised by the coloring pipelines.

    AIDEV-NOTE: stage/value are kept on the instance so callers can report
    the failing step without re-running it.
    """

    def __init__(self, message: str, stage: str | None = None, value=None):
        self.stage = stage
        self.value = value
        if stage:
            message = f"[{stage}] {message}"
        if value is not None:
            message = f"{message} (got {value!r})"
        super().__init__(message)


class InvalidInputError(ColoringError, ValueError):
    """Zero-sized or malformed pixel buffer, or an unparseable hex color."""


class EmptySampleSetError(ColoringError):
    """Every pixel was filtered out during dominant color extraction."""


class PaletteLoadError(ColoringError):
    """Reference palette could not be read or contained no usable entries."""


# --- Pixel data ---


class EdgeState(IntEnum):
    """Per-pixel edge classification used during hysteresis."""

    BACKGROUND = 0
    WEAK = 1
    STRONG = 2


@dataclass
class PixelBuffer:
    """Decoded RGBA raster.

    AIDEV-NOTE: samples is a flat uint8 array of length width * height * 4.
    Use validate() before processing; construction itself does not reject
    malformed input so that errors carry the name of the stage that hit them.
    """

    width: int
    height: int
    samples: np.ndarray

    def __post_init__(self):
        self.samples = _as_channel_values(self.samples).reshape(-1)

    @classmethod
    def from_array(cls, pixels: np.ndarray) -> "PixelBuffer":
        """Build a buffer from an HxWx4 (or HxWx3) array of 0-255 integers."""
        pixels = _as_channel_values(pixels)
        if pixels.ndim != 3 or pixels.shape[2] not in (3, 4):
            raise InvalidInputError(
                "expected an HxWx3 or HxWx4 array", stage="pixel buffer", value=pixels.shape
            )
        if pixels.shape[2] == 3:
            alpha = np.full(pixels.shape[:2] + (1,), 255, dtype=np.uint8)
            pixels = np.concatenate([pixels, alpha], axis=2)
        height, width = pixels.shape[:2]
        return cls(width=width, height=height, samples=pixels.reshape(-1))

    def validate(self, stage: str) -> None:
        """Raise InvalidInputError unless the buffer is non-empty and consistent."""
        if self.width <= 0 or self.height <= 0:
            raise InvalidInputError(
                "image must be non-empty",
                stage=stage,
                value=f"{self.width}x{self.height}",
            )
        expected = self.width * self.height * 4
        if self.samples.size != expected:
            raise InvalidInputError(
                f"expected {expected} RGBA samples for {self.width}x{self.height}",
                stage=stage,
                value=self.samples.size,
            )

    @property
    def pixels(self) -> np.ndarray:
        """HxWx4 view of the samples."""
        return self.samples.reshape(self.height, self.width, 4)


def _as_channel_values(values) -> np.ndarray:
    """Convert raw samples to uint8, rejecting anything that is not 0-255 integers.

    AIDEV-NOTE: Never cast blindly - numpy would wrap 300 or truncate 1.7
    without complaint.
    """
    if isinstance(values, (bytes, bytearray, memoryview)):
        return np.frombuffer(values, dtype=np.uint8)
    try:
        array = np.asarray(values)
    except (TypeError, ValueError) as e:
        raise InvalidInputError("samples are not a numeric array", stage="pixel buffer") from e

    if array.size == 0:
        return np.zeros(array.shape, dtype=np.uint8)
    if not np.issubdtype(array.dtype, np.integer):
        raise InvalidInputError(
            "samples must be integers", stage="pixel buffer", value=str(array.dtype)
        )
    low, high = int(array.min()), int(array.max())
    if low < 0 or high > 255:
        raise InvalidInputError(
            "samples must be in 0-255", stage="pixel buffer", value=(low, high)
        )
    return array.astype(np.uint8, copy=False)


# --- Color models ---


@dataclass(frozen=True)
class RGBColor:
    """sRGB color, channels 0-255."""

    r: float
    g: float
    b: float


@dataclass(frozen=True)
class LabColor:
    """CIE Lab color (D65). L is 0-100, a/b are practically +-128."""

    L: float
    a: float
    b: float


class DistanceMetric(Enum):
    """Perceptual distance used for palette matching."""

    CIE76 = "cie76"  # Euclidean in Lab, fast
    CIEDE2000 = "ciede2000"  # hue/chroma weighted, accurate


@dataclass
class Cluster:
    """A k-means cluster: center color and number of assigned samples."""

    center: RGBColor
    weight: int = 1


@dataclass(frozen=True)
class PaletteEntry:
    """A single reference pencil/paint.

    AIDEV-NOTE: rgb, when present, takes precedence over hex for Lab
    precomputation (manufacturer RGB is more precise than the rounded hex).
    """

    id: int
    name: str
    hex: str  # "#RRGGBB"
    rgb: "tuple[int, int, int] | None" = None
    sets: "tuple[str, ...]" = ()  # tin sizes containing this entry, e.g. ("12", "24")


@dataclass(frozen=True)
class PaletteMatch:
    """A palette entry and its distance from the source color."""

    entry: PaletteEntry
    distance: float


@dataclass
class MatchResult:
    """Ranked palette matches for one source color (ascending distance)."""

    source_hex: str
    matches: "list[PaletteMatch]" = field(default_factory=list)


# --- Processing configuration ---


@dataclass
class LineArtConfig:
    """Settings for edge extraction."""

    intensity: int = DEFAULT_INTENSITY  # threshold knob, higher keeps fewer edges
    max_output_width: int = DEFAULT_MAX_OUTPUT_WIDTH  # px
    range_sigma: float = DEFAULT_RANGE_SIGMA  # denoise range kernel width


@dataclass
class DominantColorConfig:
    """Settings for dominant color extraction."""

    num_colors: int = DEFAULT_NUM_COLORS
    sample_max_width: int = SAMPLE_MAX_WIDTH  # px
    seed: int | None = None  # None = non-deterministic seeding


@dataclass
class PaletteMatchConfig:
    """Settings for palette matching."""

    top_k: int = 1  # clamped to 1-5
    metric: str = DistanceMetric.CIEDE2000.value  # "cie76" or "ciede2000"
    palette_path: str | None = None  # JSON palette file
    set_size: str | None = None  # restrict to a tin size, e.g. "24"


@dataclass
class ProcessingConfig:
    """Top-level settings for a processing run."""

    line_art: LineArtConfig = field(default_factory=LineArtConfig)
    colors: DominantColorConfig = field(default_factory=DominantColorConfig)
    matching: PaletteMatchConfig = field(default_factory=PaletteMatchConfig)


@dataclass
class ProcessedImage:
    """Result of the image processing pipeline."""

    # Black-on-white line art, RGBA
    line_art: PixelBuffer

    # Dominant colors, most dominant first
    dominant_colors: "list[str]"

    # Palette matches for each dominant color (empty without a palette)
    matches: "list[MatchResult]" = field(default_factory=list)

    # Original image dimensions (pixels)
    original_width: int = 0
    original_height: int = 0
