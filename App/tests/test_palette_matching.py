import unittest

from coloring.palette_matching import PaletteMatcher, clamp_top_k, match_colors
from models import InvalidInputError, PaletteEntry, PaletteMatchConfig

PALETTE = [
    PaletteEntry(id=101, name="White", hex="#FFFFFF"),
    PaletteEntry(id=121, name="Pale Geranium Lake", hex="#E03C3C"),
    PaletteEntry(id=151, name="Helioblue-reddish", hex="#3C3CC8"),
    PaletteEntry(id=167, name="Permanent Green Olive", hex="#5A7828"),
    PaletteEntry(id=199, name="Black", hex="#000000"),
    PaletteEntry(id=230, name="Cold Grey I", hex="#E1E1E1"),
]


class PaletteMatcherTest(unittest.TestCase):
    def setUp(self) -> None:
        self.matcher = PaletteMatcher(PALETTE)

    def test_exact_match_has_zero_distance(self) -> None:
        result = self.matcher.rank("#000000")
        self.assertEqual(len(result.matches), 1)
        self.assertEqual(result.matches[0].entry.id, 199)
        self.assertAlmostEqual(result.matches[0].distance, 0.0, places=6)

    def test_matches_are_sorted_ascending(self) -> None:
        result = self.matcher.rank("#F0F0F0", top_k=5)
        self.assertEqual(len(result.matches), 5)
        distances = [m.distance for m in result.matches]
        self.assertEqual(distances, sorted(distances))
        self.assertIn(result.matches[0].entry.id, (101, 230))
        self.assertNotIn(199, [m.entry.id for m in result.matches])

    def test_top_k_is_clamped(self) -> None:
        self.assertEqual(clamp_top_k(0), 1)
        self.assertEqual(clamp_top_k(-3), 1)
        self.assertEqual(clamp_top_k(3), 3)
        self.assertEqual(clamp_top_k(12), 5)
        self.assertEqual(len(self.matcher.rank("#808080", top_k=0).matches), 1)
        self.assertEqual(len(self.matcher.rank("#808080", top_k=50).matches), 5)

    def test_ties_keep_palette_order(self) -> None:
        palette = [
            PaletteEntry(id=1, name="First", hex="#336699"),
            PaletteEntry(id=2, name="Second", hex="#336699"),
            PaletteEntry(id=3, name="Third", hex="#336699"),
        ]
        result = PaletteMatcher(palette).rank("#336699", top_k=3)
        self.assertEqual([m.entry.id for m in result.matches], [1, 2, 3])

    def test_rgb_takes_precedence_over_hex(self) -> None:
        palette = [
            PaletteEntry(id=1, name="Hex red", hex="#FF0000"),
            PaletteEntry(id=2, name="Measured blue", hex="#FF0000", rgb=(0, 0, 255)),
        ]
        result = PaletteMatcher(palette).rank("#0000FF")
        self.assertEqual(result.matches[0].entry.id, 2)
        self.assertAlmostEqual(result.matches[0].distance, 0.0, places=6)

    def test_source_hex_is_normalized(self) -> None:
        result = self.matcher.rank("#fff")
        self.assertEqual(result.source_hex, "#FFFFFF")
        self.assertEqual(result.matches[0].entry.id, 101)

    def test_malformed_source_hex(self) -> None:
        with self.assertRaises(InvalidInputError):
            self.matcher.rank("#12345")

    def test_empty_palette_gives_no_matches(self) -> None:
        result = PaletteMatcher([]).rank("#336699", top_k=3)
        self.assertEqual(result.source_hex, "#336699")
        self.assertEqual(result.matches, [])

    def test_cie76_metric(self) -> None:
        matcher = PaletteMatcher(PALETTE, metric="cie76")
        result = matcher.rank("#5A7828")
        self.assertEqual(result.matches[0].entry.id, 167)
        self.assertAlmostEqual(result.matches[0].distance, 0.0, places=6)

    def test_unknown_metric(self) -> None:
        with self.assertRaises(InvalidInputError):
            PaletteMatcher(PALETTE, metric="cmc")

    def test_from_config(self) -> None:
        matcher = PaletteMatcher.from_config(PALETTE, PaletteMatchConfig(metric="cie76"))
        self.assertEqual(matcher.metric.value, "cie76")

    def test_match_keeps_input_order(self) -> None:
        results = match_colors(["#E03C3C", "#3C3CC8", "#000000"], PALETTE, top_k=2)
        self.assertEqual([r.source_hex for r in results], ["#E03C3C", "#3C3CC8", "#000000"])
        self.assertEqual([r.matches[0].entry.id for r in results], [121, 151, 199])
        self.assertTrue(all(len(r.matches) == 2 for r in results))


if __name__ == "__main__":
    unittest.main()
