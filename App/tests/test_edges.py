import unittest

import numpy as np

from coloring.edges import (
    EdgeExtractor,
    classify_edges,
    denoise,
    detect_edges,
    extract_line_art,
    high_percentile,
    hysteresis,
    link_edges,
    non_max_suppression,
    percentile_thresholds,
    seal_gaps,
    sobel,
    supersample,
    to_grayscale,
)
from models import EdgeState, InvalidInputError, LineArtConfig, PixelBuffer


def _solid(width: int, height: int, rgb=(120, 130, 140)) -> PixelBuffer:
    pixels = np.zeros((height, width, 4), dtype=np.uint8)
    pixels[..., :3] = rgb
    pixels[..., 3] = 255
    return PixelBuffer.from_array(pixels)


def _checkerboard(size: int, block: int) -> np.ndarray:
    yy, xx = np.indices((size, size))
    return np.where((yy // block + xx // block) % 2 == 0, 0, 255).astype(np.uint8)


class StageTest(unittest.TestCase):
    def test_grayscale_uses_rec709_weights(self) -> None:
        pixels = np.array([[[0, 255, 0, 255], [255, 0, 0, 0], [0, 0, 255, 255]]], dtype=np.uint8)
        self.assertEqual(to_grayscale(pixels).tolist(), [[182, 54, 18]])

    def test_denoise_preserves_flat_areas_and_hard_steps(self) -> None:
        gray = np.zeros((6, 6), dtype=np.uint8)
        gray[:, 3:] = 200
        self.assertTrue(np.array_equal(denoise(gray, 18), gray))

    def test_denoise_smooths_small_noise(self) -> None:
        gray = np.full((5, 5), 100, dtype=np.uint8)
        gray[2, 2] = 110
        smoothed = denoise(gray, 18)
        self.assertLess(smoothed[2, 2], 110)
        self.assertGreaterEqual(smoothed[2, 2], 100)

    def test_sobel_leaves_border_ring_at_zero(self) -> None:
        gray = np.zeros((8, 8), dtype=np.uint8)
        gray[:, 4:] = 100
        magnitude, angle = sobel(gray)
        self.assertEqual(magnitude[3, 3], 400.0)
        self.assertEqual(angle[3, 3], 0.0)
        for ring in (magnitude[0, :], magnitude[-1, :], magnitude[:, 0], magnitude[:, -1]):
            self.assertFalse(ring.any())

    def test_sobel_on_tiny_field(self) -> None:
        magnitude, angle = sobel(np.zeros((2, 5), dtype=np.uint8))
        self.assertFalse(magnitude.any())
        self.assertEqual(angle.shape, (2, 5))

    def test_non_max_suppression_thins_ridges(self) -> None:
        magnitude = np.zeros((3, 7))
        magnitude[1] = [0, 1, 3, 5, 3, 1, 0]
        nms = non_max_suppression(magnitude, np.zeros_like(magnitude))
        self.assertEqual(nms[1].tolist(), [0, 0, 0, 5, 0, 0, 0])

    def test_high_percentile_is_clamped(self) -> None:
        self.assertAlmostEqual(high_percentile(34), 0.84)
        self.assertEqual(high_percentile(10), 0.82)
        self.assertEqual(high_percentile(60), 0.92)

    def test_percentile_thresholds(self) -> None:
        nms = np.arange(1, 101, dtype=np.float64).reshape(10, 10)
        nms[0, 0] = 0  # zeros are ignored
        high, low = percentile_thresholds(nms, 0.84, 0.84 * 0.55)
        self.assertEqual(high, 85.0)
        self.assertEqual(low, 47.0)

    def test_percentile_thresholds_without_edges(self) -> None:
        self.assertEqual(percentile_thresholds(np.zeros((4, 4)), 0.84, 0.46), (0.0, 0.0))

    def test_classify_edges(self) -> None:
        nms = np.array([[0.0, 1.0, 5.0, 10.0]])
        states = classify_edges(nms, high=10.0, low=5.0)
        self.assertEqual(
            states.tolist(), [[EdgeState.BACKGROUND, EdgeState.BACKGROUND, EdgeState.WEAK, EdgeState.STRONG]]
        )


class HysteresisTest(unittest.TestCase):
    def _chain(self) -> np.ndarray:
        states = np.zeros((7, 7), dtype=np.uint8)
        states[1, 1] = EdgeState.STRONG
        for i in (2, 3, 4):
            states[i, i] = EdgeState.WEAK
        states[1, 5] = EdgeState.WEAK  # not connected to any strong pixel
        return states

    def test_weak_chain_is_promoted_over_multiple_hops(self) -> None:
        linked = link_edges(self._chain())
        self.assertEqual(linked[4, 4], EdgeState.STRONG)
        self.assertEqual(linked[1, 5], EdgeState.BACKGROUND)
        self.assertFalse((linked == EdgeState.WEAK).any())

    def test_linking_is_idempotent(self) -> None:
        linked = link_edges(self._chain())
        self.assertTrue(np.array_equal(link_edges(linked), linked))

    def test_flat_image_has_no_edges(self) -> None:
        nms = non_max_suppression(*sobel(np.full((10, 10), 77, dtype=np.uint8)))
        self.assertFalse(nms.any())
        high, low = percentile_thresholds(nms, 0.84, 0.46)
        self.assertEqual((high, low), (0.0, 0.0))
        self.assertFalse(hysteresis(nms, high, low).any())

    def test_seal_fills_majority_pixels_once(self) -> None:
        states = np.zeros((5, 5), dtype=np.uint8)
        for y, x in ((1, 1), (1, 2), (1, 3), (2, 1), (2, 3)):
            states[y, x] = EdgeState.STRONG
        sealed = seal_gaps(states)
        self.assertEqual(sealed[2, 2], EdgeState.STRONG)
        self.assertEqual(sealed[3, 2], EdgeState.BACKGROUND)
        self.assertEqual(int((sealed == EdgeState.STRONG).sum()), 6)
        # input is not modified
        self.assertEqual(states[2, 2], EdgeState.BACKGROUND)


class CheckerboardTest(unittest.TestCase):
    def test_block_boundaries_are_strong(self) -> None:
        states = detect_edges(_checkerboard(16, 8))
        for y, x in ((3, 7), (3, 8), (12, 7), (7, 3), (8, 12)):
            self.assertEqual(states[y, x], EdgeState.STRONG, (y, x))
        for y, x in ((3, 3), (12, 12), (3, 12), (12, 3)):
            self.assertEqual(states[y, x], EdgeState.BACKGROUND, (y, x))

    def _small_checkerboard(self) -> PixelBuffer:
        pixels = np.zeros((4, 4, 4), dtype=np.uint8)
        pixels[..., :3] = _checkerboard(4, 2)[..., None]
        pixels[..., 3] = 255
        return PixelBuffer.from_array(pixels)

    def test_small_checkerboard_marks_both_boundaries(self) -> None:
        work = supersample(self._small_checkerboard(), 8, 8)
        states = detect_edges(to_grayscale(work.pixels))
        strong = states == EdgeState.STRONG
        # The vertical boundary sits between columns 3 and 4, the horizontal
        # one between rows 3 and 4; the crossing itself has no clear gradient.
        for row in (1, 2, 5, 6):
            self.assertTrue(strong[row, 3:5].any(), f"vertical boundary missing on row {row}")
        for col in (1, 2, 5, 6):
            self.assertTrue(strong[3:5, col].any(), f"horizontal boundary missing on column {col}")

    def test_small_checkerboard_produces_dark_lines(self) -> None:
        result = extract_line_art(self._small_checkerboard())
        self.assertEqual((result.width, result.height), (4, 4))
        self.assertLess(int(result.pixels[..., :3].min()), 255)
        self.assertTrue((result.pixels[..., 3] == 255).all())


class ExtractLineArtTest(unittest.TestCase):
    def test_output_size_follows_max_width_and_aspect(self) -> None:
        cases = [
            ((300, 200), 150, (150, 100)),
            ((101, 33), 40, (40, 13)),
            ((30, 50), 900, (30, 50)),
        ]
        for (width, height), max_width, expected in cases:
            with self.subTest(size=(width, height), max_width=max_width):
                result = extract_line_art(_solid(width, height), max_output_width=max_width)
                self.assertEqual((result.width, result.height), expected)
                self.assertEqual(result.samples.size, expected[0] * expected[1] * 4)

    def test_uniform_image_gives_blank_page(self) -> None:
        result = extract_line_art(_solid(60, 40))
        self.assertTrue((result.pixels == 255).all())

    def test_deterministic(self) -> None:
        rng = np.random.RandomState(3)
        pixels = rng.randint(0, 256, size=(30, 40, 4)).astype(np.uint8)
        buffer = PixelBuffer.from_array(pixels)
        first = extract_line_art(buffer, intensity=36)
        second = extract_line_art(buffer, intensity=36)
        self.assertTrue(np.array_equal(first.samples, second.samples))

    def test_rejects_empty_and_malformed_buffers(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            extract_line_art(PixelBuffer(0, 0, b""))
        self.assertEqual(ctx.exception.stage, "edge extraction")
        with self.assertRaises(InvalidInputError):
            extract_line_art(PixelBuffer(2, 2, bytes(12)))
        with self.assertRaises(InvalidInputError):
            extract_line_art(_solid(4, 4), max_output_width=0)

    def test_extractor_uses_config(self) -> None:
        extractor = EdgeExtractor(LineArtConfig(max_output_width=20))
        result = extractor.extract(_solid(40, 10))
        self.assertEqual((result.width, result.height), (20, 5))


if __name__ == "__main__":
    unittest.main()
