"""Photo to coloring page pipelines.

AIDEV-NOTE: This package holds the two independent pipelines and their
shared color math. Organized into modular components:
- processor: Main ImageProcessor orchestrator (file I/O lives here only)
- edges: Photo to black-on-white line art
- quantization: Dominant color extraction (k-means++)
- palette_matching: Nearest reference palette entries by Delta E
- color_science: sRGB <-> Lab and Delta E 76/2000
- utils: Sizing and Pillow interop
"""

from .edges import EdgeExtractor, extract_line_art
from .palette_matching import PaletteMatcher, match_colors
from .processor import ImageProcessor
from .quantization import DominantColorExtractor, extract_dominant_colors

__all__ = [
    "DominantColorExtractor",
    "EdgeExtractor",
    "ImageProcessor",
    "PaletteMatcher",
    "extract_dominant_colors",
    "extract_line_art",
    "match_colors",
]
