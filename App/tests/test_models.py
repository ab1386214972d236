import unittest

import numpy as np

from models import ColoringError, InvalidInputError, PixelBuffer


class PixelBufferTest(unittest.TestCase):
    def test_from_rgb_array_adds_opaque_alpha(self) -> None:
        buffer = PixelBuffer.from_array(np.full((2, 3, 3), 9, dtype=np.uint8))
        self.assertEqual((buffer.width, buffer.height), (3, 2))
        self.assertEqual(buffer.pixels[1, 2].tolist(), [9, 9, 9, 255])
        buffer.validate("test")

    def test_from_array_rejects_other_shapes(self) -> None:
        with self.assertRaises(InvalidInputError):
            PixelBuffer.from_array(np.zeros((4, 4), dtype=np.uint8))

    def test_accepts_raw_bytes(self) -> None:
        buffer = PixelBuffer(1, 1, bytes([1, 2, 3, 4]))
        self.assertEqual(buffer.pixels[0, 0].tolist(), [1, 2, 3, 4])

    def test_accepts_plain_integer_lists(self) -> None:
        buffer = PixelBuffer(1, 1, [0, 128, 255, 255])
        self.assertEqual(buffer.samples.dtype, np.uint8)
        self.assertEqual(buffer.samples.tolist(), [0, 128, 255, 255])

    def test_rejects_out_of_range_samples(self) -> None:
        for samples in ([300, 0, 0, 255], [0, -1, 0, 255]):
            with self.subTest(samples=samples):
                with self.assertRaises(InvalidInputError) as ctx:
                    PixelBuffer(1, 1, samples)
                self.assertEqual(ctx.exception.stage, "pixel buffer")
        with self.assertRaises(InvalidInputError):
            PixelBuffer.from_array(np.full((2, 2, 4), 256))

    def test_rejects_fractional_samples(self) -> None:
        with self.assertRaises(InvalidInputError):
            PixelBuffer(1, 1, [1.7, 2.2, 3.9, 255.0])
        with self.assertRaises(InvalidInputError):
            PixelBuffer.from_array(np.full((2, 2, 3), 0.5))

    def test_rejects_non_numeric_samples(self) -> None:
        for samples in ("abcd", ["a", "b", "c", "d"], [[1, 2], [3]]):
            with self.subTest(samples=samples):
                with self.assertRaises(InvalidInputError):
                    PixelBuffer(1, 1, samples)

    def test_validate_names_the_stage(self) -> None:
        with self.assertRaises(InvalidInputError) as ctx:
            PixelBuffer(2, 2, bytes(15)).validate("edge extraction")
        self.assertEqual(ctx.exception.stage, "edge extraction")
        self.assertEqual(ctx.exception.value, 15)
        self.assertIn("[edge extraction]", str(ctx.exception))
        self.assertIsInstance(ctx.exception, ValueError)
        self.assertIsInstance(ctx.exception, ColoringError)


if __name__ == "__main__":
    unittest.main()
