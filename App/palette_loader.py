"""Reference palette loading for the coloring book maker.

This module reads pencil/paint palettes from JSON files and normalizes the
different column spellings found in manufacturer exports.

AIDEV-NOTE: Accepted shapes are a list of records or an object mapping the
numeric id to a record. Records missing an id, name or hex are dropped here,
at load time, so the matcher never has to re-check them.
"""

import json
import logging
import math
import re
from pathlib import Path

from models import InvalidInputError, PaletteEntry, PaletteLoadError
from coloring.color_science import normalize_hex

logger = logging.getLogger(__name__)

ID_KEYS = ("FC_Number", "number", "id", "FC", "code")
NAME_KEYS = ("FC_Color", "name", "Color", "label")
HEX_KEYS = ("Hex", "hex", "HEX")
RGB_KEYS = ("RGB", "rgb")

SET_SIZES = ("12", "24", "36", "48", "60", "72", "96", "120")
_SET_KEY = re.compile(r"(?:^|\D)(12|24|36|48|60|72|96|120)(?:\D|$)")
_TRUTHY = {"1", "y", "yes", "true"}


def load_palette(path: str | Path, set_size: str | None = None) -> "list[PaletteEntry]":
    """Load and normalize a palette JSON file.

    Args:
        path: JSON file to read
        set_size: Optional tin size ("12", "24", ...) to restrict entries to

    Returns:
        List of PaletteEntry in file order

    Raises:
        PaletteLoadError: If the file cannot be read or parsed, has the wrong
            shape, or yields no usable entries
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise PaletteLoadError(f"cannot read palette: {e}", stage="palette loading", value=str(path)) from e
    except json.JSONDecodeError as e:
        raise PaletteLoadError(f"invalid palette JSON: {e}", stage="palette loading", value=str(path)) from e

    palette = parse_palette(data, source=str(path))
    logger.info(f"Loaded {len(palette)} palette entries from {path}")

    if set_size is not None:
        palette = filter_by_set(palette, set_size)
        if not palette:
            raise PaletteLoadError(
                f"no entries belong to set {set_size}", stage="palette loading", value=str(path)
            )
    return palette


def parse_palette(data, source: str = "<data>") -> "list[PaletteEntry]":
    """Normalize already-decoded palette JSON into PaletteEntry objects."""
    if isinstance(data, dict):
        records = []
        for key, record in data.items():
            if isinstance(record, dict):
                record = {"id": key, **record}
            records.append(record)
    elif isinstance(data, list):
        records = data
    else:
        raise PaletteLoadError(
            "palette must be a list or an id mapping", stage="palette loading", value=type(data).__name__
        )

    palette = []
    for index, record in enumerate(records):
        entry = normalize_record(record)
        if entry is None:
            logger.warning(f"Skipping incomplete palette record #{index} in {source}")
            continue
        palette.append(entry)

    if not palette:
        raise PaletteLoadError("palette has no usable entries", stage="palette loading", value=source)
    return palette


def normalize_record(record) -> PaletteEntry | None:
    """Build a PaletteEntry from one raw record, or None if it is incomplete."""
    if not isinstance(record, dict):
        return None

    # Ids come as ints, floats or numeric strings ("199", "199.0")
    try:
        number = float(_first(record, ID_KEYS))
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    entry_id = int(number)
    name = str(_first(record, NAME_KEYS) or "").strip()
    raw_hex = str(_first(record, HEX_KEYS) or "").strip()
    if not entry_id or not name or not raw_hex:
        return None
    try:
        hex_color = normalize_hex(raw_hex)
    except InvalidInputError:
        return None

    return PaletteEntry(
        id=entry_id,
        name=name,
        hex=hex_color,
        rgb=_parse_rgb(_first(record, RGB_KEYS)),
        sets=_parse_sets(record),
    )


def filter_by_set(palette: "list[PaletteEntry]", set_size: str | int) -> "list[PaletteEntry]":
    """Entries belonging to the given tin size."""
    set_size = str(set_size)
    return [entry for entry in palette if set_size in entry.sets]


def _first(record: dict, keys):
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def _parse_rgb(value) -> "tuple[int, int, int] | None":
    if not isinstance(value, (list, tuple)) or len(value) != 3:
        return None
    try:
        r, g, b = (int(c) for c in value)
    except (TypeError, ValueError):
        return None
    return (r, g, b)


def _parse_sets(record: dict) -> "tuple[str, ...]":
    """Tin sizes from a "sets" list or from per-size flag columns."""
    found = set()
    sets = record.get("sets")
    if isinstance(sets, (list, tuple)):
        found.update(str(s) for s in sets if str(s) in SET_SIZES)
    elif isinstance(sets, dict):
        found.update(str(k) for k, v in sets.items() if str(k) in SET_SIZES and _is_truthy(v))

    for key, value in record.items():
        match = _SET_KEY.search(key.lower())
        if match and _is_truthy(value):
            found.add(match.group(1))
    return tuple(sorted(found, key=int))


def _is_truthy(value) -> bool:
    if value is True or value == 1:
        return True
    return isinstance(value, str) and value.strip().lower() in _TRUTHY
