"""Main image processor orchestrating the complete pipeline.

AIDEV-NOTE: This module is the only place that touches the filesystem for
images. It decodes files into PixelBuffers, runs the line art and dominant
color pipelines (which are independent of each other) and optionally matches
the colors against a reference palette.
"""

import logging
from pathlib import Path

from PIL import Image, UnidentifiedImageError

from models import (
    EmptySampleSetError,
    InvalidInputError,
    MatchResult,
    PaletteEntry,
    PixelBuffer,
    ProcessedImage,
    ProcessingConfig,
)

from .edges import EdgeExtractor
from .palette_matching import PaletteMatcher
from .quantization import DominantColorExtractor
from .utils import buffer_to_image, image_to_buffer

logger = logging.getLogger(__name__)


class ImageProcessor:
    """Turns photos into line art plus a matched color palette."""

    def __init__(self, processing_config: ProcessingConfig | None = None, random_state=None):
        self.processing_config = processing_config or ProcessingConfig()
        self.edge_extractor = EdgeExtractor(self.processing_config.line_art)
        self.color_extractor = DominantColorExtractor(
            self.processing_config.colors, random_state=random_state
        )

    def load_image(self, file_path: str | Path) -> PixelBuffer:
        """Load and decode an image file.

        Args:
            file_path: Path to image file (PNG, JPG, etc.)

        Returns:
            PixelBuffer in RGBA layout

        Raises:
            InvalidInputError: If file cannot be loaded or is invalid
        """
        try:
            with Image.open(file_path) as image:
                # AIDEV-NOTE: Always convert to RGBA for consistent processing
                return image_to_buffer(image.convert("RGBA"))
        except (OSError, UnidentifiedImageError) as e:
            raise InvalidInputError(
                f"failed to load image: {e}", stage="image loading", value=str(file_path)
            ) from e

    def save_image(self, buffer: PixelBuffer, file_path: str | Path) -> None:
        """Encode a buffer as PNG."""
        buffer_to_image(buffer).save(file_path, format="PNG")

    def line_art(self, buffer: PixelBuffer) -> PixelBuffer:
        """Black-on-white line art using the configured intensity and width."""
        return self.edge_extractor.extract(buffer)

    def dominant_colors(self, buffer: PixelBuffer, k: int | None = None) -> "list[str]":
        """Dominant colors as hex strings, most dominant first."""
        return self.color_extractor.extract(buffer, k)

    def match_colors(
        self,
        hexes: "list[str]",
        palette: "list[PaletteEntry]",
        top_k: int | None = None,
    ) -> "list[MatchResult]":
        """Rank the nearest palette entries for each color."""
        matching = self.processing_config.matching
        matcher = PaletteMatcher.from_config(palette, matching)
        return matcher.match(hexes, top_k if top_k is not None else matching.top_k)

    def process(
        self,
        file_path: str | Path,
        palette: "list[PaletteEntry] | None" = None,
    ) -> ProcessedImage:
        """Execute complete image processing pipeline.

        Args:
            file_path: Path to input image
            palette: Optional reference palette to match dominant colors against

        Returns:
            ProcessedImage with line art, colors and matches
        """
        logger.info("Starting image processing pipeline...")

        buffer = self.load_image(file_path)
        logger.info(f"Loaded image with size: {buffer.width}x{buffer.height} pixels.")

        logger.info("Extracting line art...")
        line_art = self.line_art(buffer)
        logger.info(f"Line art size: {line_art.width}x{line_art.height} pixels.")

        logger.info("Extracting dominant colors...")
        try:
            colors = self.dominant_colors(buffer)
        except EmptySampleSetError as e:
            # Mostly white or transparent pages have nothing worth coloring
            logger.warning(f"No dominant colors: {e}")
            colors = []
        logger.info(f"Dominant colors: {', '.join(colors) or 'none'}")

        matches = []
        if palette and colors:
            logger.info(f"Matching against {len(palette)} palette entries...")
            matches = self.match_colors(colors, palette)

        logger.info("Image processing complete.")
        return ProcessedImage(
            line_art=line_art,
            dominant_colors=colors,
            matches=matches,
            original_width=buffer.width,
            original_height=buffer.height,
        )
