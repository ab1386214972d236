"""Color space conversion and perceptual color distance.

AIDEV-NOTE: Single shared home for sRGB <-> CIE Lab (D65) and the Delta E
formulas. Both the dominant color pipeline and the palette matcher import
from here; do not re-implement Lab math elsewhere.

Scalar helpers take and return RGBColor/LabColor. The *_array variants work
on (N, 3) numpy arrays and are what the palette matcher uses to score a
whole palette in one call.
"""

import math
import re

import numpy as np

from models import DistanceMetric, InvalidInputError, LabColor, RGBColor

# sRGB (D65) linear RGB -> XYZ
RGB_TO_XYZ = np.array(
    [
        [0.4124564, 0.3575761, 0.1804375],
        [0.2126729, 0.7151522, 0.0721750],
        [0.0193339, 0.1191920, 0.9503041],
    ]
)
XYZ_TO_RGB = np.linalg.inv(RGB_TO_XYZ)

# D65 reference white
WHITE_POINT = np.array([0.95047, 1.0, 1.08883])

LAB_EPSILON = 0.008856
LAB_SLOPE = 7.787
LAB_OFFSET = 16.0 / 116.0

_HEX_PATTERN = re.compile(r"^#?([0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")


# --- Hex helpers ---


def normalize_hex(hex_color: str) -> str:
    """Return hex_color as "#RRGGBB" (uppercase, shorthand expanded).

    Raises:
        InvalidInputError: If hex_color is not a 3 or 6 digit hex string
    """
    match = _HEX_PATTERN.match(hex_color.strip()) if isinstance(hex_color, str) else None
    if match is None:
        raise InvalidInputError("malformed hex color", stage="color conversion", value=hex_color)
    digits = match.group(1)
    if len(digits) == 3:
        digits = "".join(c * 2 for c in digits)
    return "#" + digits.upper()


def hex_to_rgb(hex_color: str) -> RGBColor:
    """Parse "#RGB"/"#RRGGBB" (leading # optional) into an RGBColor."""
    digits = normalize_hex(hex_color)[1:]
    return RGBColor(int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16))


def rgb_to_hex(rgb: RGBColor) -> str:
    """Format an RGBColor as "#RRGGBB", rounding half up and clamping to 0-255."""
    channels = (_round_channel(c) for c in (rgb.r, rgb.g, rgb.b))
    return "#" + "".join(f"{c:02X}" for c in channels)


def _round_channel(value: float) -> int:
    return max(0, min(255, int(math.floor(value + 0.5))))


# --- Vectorized conversions ---


def _linearize(channels: np.ndarray) -> np.ndarray:
    return np.where(
        channels <= 0.04045,
        channels / 12.92,
        ((channels + 0.055) / 1.055) ** 2.4,
    )


def _delinearize(channels: np.ndarray) -> np.ndarray:
    channels = np.clip(channels, 0.0, None)
    return np.where(
        channels <= 0.0031308,
        channels * 12.92,
        1.055 * channels ** (1 / 2.4) - 0.055,
    )


def rgb_array_to_lab(rgb: np.ndarray) -> np.ndarray:
    """Convert an (N, 3) array of sRGB values (0-255) to Lab."""
    rgb = np.asarray(rgb, dtype=np.float64).reshape(-1, 3) / 255.0
    xyz = _linearize(rgb) @ RGB_TO_XYZ.T
    t = xyz / WHITE_POINT
    f = np.where(t > LAB_EPSILON, np.cbrt(t), LAB_SLOPE * t + LAB_OFFSET)
    fx, fy, fz = f[:, 0], f[:, 1], f[:, 2]
    return np.column_stack([116.0 * fy - 16.0, 500.0 * (fx - fy), 200.0 * (fy - fz)])


def lab_array_to_rgb(lab: np.ndarray) -> np.ndarray:
    """Convert an (N, 3) Lab array back to float sRGB (0-255, clipped)."""
    lab = np.asarray(lab, dtype=np.float64).reshape(-1, 3)
    fy = (lab[:, 0] + 16.0) / 116.0
    fx = fy + lab[:, 1] / 500.0
    fz = fy - lab[:, 2] / 200.0
    f = np.column_stack([fx, fy, fz])
    cubed = f**3
    # Inverse of the piecewise f(t); the breakpoint is continuous
    t = np.where(cubed > LAB_EPSILON, cubed, (f - LAB_OFFSET) / LAB_SLOPE)
    linear = (t * WHITE_POINT) @ XYZ_TO_RGB.T
    return np.clip(_delinearize(linear) * 255.0, 0.0, 255.0)


# --- Scalar conversions ---


def srgb_to_lab(rgb: RGBColor) -> LabColor:
    """Convert an sRGB color to CIE Lab (D65)."""
    L, a, b = rgb_array_to_lab(np.array([rgb.r, rgb.g, rgb.b]))[0]
    return LabColor(float(L), float(a), float(b))


def lab_to_srgb(lab: LabColor) -> RGBColor:
    """Convert a Lab color back to sRGB (float channels, 0-255)."""
    r, g, b = lab_array_to_rgb(np.array([lab.L, lab.a, lab.b]))[0]
    return RGBColor(float(r), float(g), float(b))


def hex_to_lab(hex_color: str) -> LabColor:
    """Convert a hex color string directly to Lab."""
    return srgb_to_lab(hex_to_rgb(hex_color))


# --- Distances ---


def delta_e76_array(lab1: np.ndarray, lab2: np.ndarray) -> np.ndarray:
    """Euclidean Lab distance, broadcasting over the last axis."""
    diff = np.asarray(lab1, dtype=np.float64) - np.asarray(lab2, dtype=np.float64)
    return np.sqrt(np.sum(diff**2, axis=-1))


def delta_e2000_array(lab1: np.ndarray, lab2: np.ndarray) -> np.ndarray:
    """CIEDE2000 with kL = kC = kH = 1, broadcasting over the last axis.

    AIDEV-NOTE: Follows Sharma, Wu & Dalal (2005) including the zero-chroma
    special cases for the hue difference and mean hue.
    """
    lab1 = np.asarray(lab1, dtype=np.float64)
    lab2 = np.asarray(lab2, dtype=np.float64)
    L1, a1, b1 = lab1[..., 0], lab1[..., 1], lab1[..., 2]
    L2, a2, b2 = lab2[..., 0], lab2[..., 1], lab2[..., 2]

    C1 = np.hypot(a1, b1)
    C2 = np.hypot(a2, b2)
    C_bar_7 = ((C1 + C2) / 2.0) ** 7
    G = 0.5 * (1.0 - np.sqrt(C_bar_7 / (C_bar_7 + 25.0**7)))

    a1_prime = (1.0 + G) * a1
    a2_prime = (1.0 + G) * a2
    C1_prime = np.hypot(a1_prime, b1)
    C2_prime = np.hypot(a2_prime, b2)
    h1_prime = np.arctan2(b1, a1_prime) % (2 * np.pi)
    h2_prime = np.arctan2(b2, a2_prime) % (2 * np.pi)

    chroma_product = C1_prime * C2_prime
    achromatic = chroma_product == 0

    delta_L = L2 - L1
    delta_C = C2_prime - C1_prime
    h_diff = h2_prime - h1_prime
    delta_h = np.where(h_diff > np.pi, h_diff - 2 * np.pi, h_diff)
    delta_h = np.where(h_diff < -np.pi, h_diff + 2 * np.pi, delta_h)
    delta_h = np.where(achromatic, 0.0, delta_h)
    delta_H = 2.0 * np.sqrt(chroma_product) * np.sin(delta_h / 2.0)

    L_bar = (L1 + L2) / 2.0
    C_bar_prime = (C1_prime + C2_prime) / 2.0
    h_sum = h1_prime + h2_prime
    h_bar = np.where(
        np.abs(h_diff) <= np.pi,
        h_sum / 2.0,
        np.where(h_sum < 2 * np.pi, (h_sum + 2 * np.pi) / 2.0, (h_sum - 2 * np.pi) / 2.0),
    )
    h_bar = np.where(achromatic, h_sum, h_bar)

    T = (
        1.0
        - 0.17 * np.cos(h_bar - np.radians(30))
        + 0.24 * np.cos(2 * h_bar)
        + 0.32 * np.cos(3 * h_bar + np.radians(6))
        - 0.20 * np.cos(4 * h_bar - np.radians(63))
    )
    L_offset_sq = (L_bar - 50.0) ** 2
    S_L = 1.0 + 0.015 * L_offset_sq / np.sqrt(20.0 + L_offset_sq)
    S_C = 1.0 + 0.045 * C_bar_prime
    S_H = 1.0 + 0.015 * C_bar_prime * T

    delta_theta = np.radians(30) * np.exp(-(((np.degrees(h_bar) - 275.0) / 25.0) ** 2))
    C_bar_prime_7 = C_bar_prime**7
    R_C = 2.0 * np.sqrt(C_bar_prime_7 / (C_bar_prime_7 + 25.0**7))
    R_T = -R_C * np.sin(2 * delta_theta)

    term_L = delta_L / S_L
    term_C = delta_C / S_C
    term_H = delta_H / S_H
    squared = term_L**2 + term_C**2 + term_H**2 + R_T * term_C * term_H
    return np.sqrt(np.clip(squared, 0.0, None))


def delta_e76(lab1: LabColor, lab2: LabColor) -> float:
    """Delta E 1976: Euclidean distance in Lab. Cheap, used for quick matching."""
    return float(delta_e76_array(_lab_vector(lab1), _lab_vector(lab2)))


def delta_e2000(lab1: LabColor, lab2: LabColor) -> float:
    """Delta E 2000: perceptually weighted distance in Lab."""
    return float(delta_e2000_array(_lab_vector(lab1), _lab_vector(lab2)))


def distance_function(metric: "DistanceMetric | str"):
    """Return the vectorized distance function for a metric name or enum."""
    try:
        metric = DistanceMetric(metric)
    except ValueError as e:
        raise InvalidInputError("unknown distance metric", stage="palette matching", value=metric) from e
    if metric == DistanceMetric.CIE76:
        return delta_e76_array
    return delta_e2000_array


def _lab_vector(lab: LabColor) -> np.ndarray:
    return np.array([lab.L, lab.a, lab.b], dtype=np.float64)
