"""Match colors to a fixed reference palette by perceptual distance.

AIDEV-NOTE: Palette Lab values are computed once when the matcher is built,
so each query costs one conversion plus one vectorized distance call.
"""

import numpy as np

from models import (
    MAX_TOP_K,
    DistanceMetric,
    MatchResult,
    PaletteEntry,
    PaletteMatch,
    PaletteMatchConfig,
)

from .color_science import (
    distance_function,
    hex_to_rgb,
    normalize_hex,
    rgb_array_to_lab,
)


def clamp_top_k(top_k: int) -> int:
    """Clamp a requested match count to 1-5."""
    return max(1, min(MAX_TOP_K, int(top_k)))


def palette_to_lab(palette: "list[PaletteEntry]") -> np.ndarray:
    """Lab values for every entry, preferring the precise rgb over hex."""
    if not palette:
        return np.empty((0, 3))
    rgb = [entry.rgb if entry.rgb is not None else _rgb_tuple(entry.hex) for entry in palette]
    return rgb_array_to_lab(np.array(rgb, dtype=np.float64))


class PaletteMatcher:
    """Ranks the nearest reference palette entries for arbitrary colors."""

    def __init__(
        self,
        palette: "list[PaletteEntry]",
        metric: "DistanceMetric | str" = DistanceMetric.CIEDE2000,
    ):
        self.palette = list(palette)
        self._distance = distance_function(metric)
        self.metric = DistanceMetric(metric)
        self._palette_lab = palette_to_lab(self.palette)

    @classmethod
    def from_config(cls, palette: "list[PaletteEntry]", config: PaletteMatchConfig) -> "PaletteMatcher":
        return cls(palette, metric=config.metric)

    def rank(self, source_hex: str, top_k: int = 1) -> MatchResult:
        """Nearest top_k palette entries for one color, ascending by distance.

        Raises:
            InvalidInputError: If source_hex is malformed
        """
        source_hex = normalize_hex(source_hex)
        if not self.palette:
            return MatchResult(source_hex=source_hex)

        source_lab = rgb_array_to_lab(np.array(_rgb_tuple(source_hex), dtype=np.float64))[0]
        distances = self._distance(source_lab, self._palette_lab)
        # Stable sort: ties keep palette order
        order = np.argsort(distances, kind="stable")[: clamp_top_k(top_k)]
        return MatchResult(
            source_hex=source_hex,
            matches=[PaletteMatch(self.palette[i], float(distances[i])) for i in order],
        )

    def match(self, source_hexes: "list[str]", top_k: int = 1) -> "list[MatchResult]":
        """Rank palette entries for each source color, in input order."""
        return [self.rank(source_hex, top_k) for source_hex in source_hexes]


def match_colors(
    source_hexes: "list[str]",
    palette: "list[PaletteEntry]",
    top_k: int = 1,
    metric: "DistanceMetric | str" = DistanceMetric.CIEDE2000,
) -> "list[MatchResult]":
    """One-shot helper: build a PaletteMatcher and match source_hexes."""
    return PaletteMatcher(palette, metric=metric).match(source_hexes, top_k)


def _rgb_tuple(hex_color: str) -> "tuple[int, int, int]":
    color = hex_to_rgb(hex_color)
    return (color.r, color.g, color.b)
