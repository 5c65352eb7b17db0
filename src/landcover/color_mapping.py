"""
Color table extraction for categorical land-cover rasters.

Turns the palette embedded in a land-cover raster into a ``ColorTable``
(class code -> RGB), applies a disambiguation policy for pure-black palette
entries, and selects the classes of interest through an explicit
label -> code mapping that is checked against the palette.

Usage:
    from src.landcover.color_mapping import extract_color_table, curate_color_table

    table = extract_color_table(palette)                  # black -> water blue
    legend_table = curate_color_table(table, {"water": 1, "trees": 2})
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

from src.config import WATER_BLUE
from src.landcover.errors import PaletteMismatchError, RasterLoadError

logger = logging.getLogger(__name__)

RGB = Tuple[int, int, int]


def hex_to_rgb(hex_color: str) -> RGB:
    """Convert hex color string to an 8-bit RGB tuple.

    Args:
        hex_color: Hex color string in format "#RRGGBB", "#RGB",
            "RRGGBB" or "RGB"

    Returns:
        Tuple of (r, g, b) ints in range 0-255

    Raises:
        ValueError: If hex_color format is invalid or contains invalid characters

    Examples:
        >>> hex_to_rgb("#419bdf")
        (65, 155, 223)
    """
    # Remove hash if present
    hex_str = hex_color.lstrip("#")

    # Handle shorthand format (#RGB -> #RRGGBB)
    if len(hex_str) == 3:
        hex_str = "".join([c * 2 for c in hex_str])

    # Validate length
    if len(hex_str) != 6:
        raise ValueError(
            f"Invalid hex color: '{hex_color}'. "
            f"Expected #RRGGBB, #RGB, RRGGBB, or RGB format."
        )

    # Validate characters are valid hex
    try:
        int(hex_str, 16)
    except ValueError:
        raise ValueError(f"Invalid hex color: '{hex_color}'. Contains non-hex characters.")

    return (int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))


def rgb_to_hex(rgb: RGB) -> str:
    return "#{:02x}{:02x}{:02x}".format(*rgb)


@dataclass(frozen=True)
class BlackPolicy:
    """
    How to treat pure-black (0, 0, 0) palette entries.

    Some land-cover palettes use black both for "unclassified" and, in
    practice, for water and nodata. ``replacement`` is the color black
    entries are reassigned to; None keeps them black.
    """

    replacement: Optional[str] = WATER_BLUE

    def apply(self, rgb: RGB) -> RGB:
        if self.replacement is not None and tuple(rgb) == (0, 0, 0):
            return hex_to_rgb(self.replacement)
        return tuple(rgb)


KEEP_BLACK = BlackPolicy(replacement=None)


@dataclass(frozen=True)
class ColorTable:
    """Ordered mapping from class code to RGB color, with optional labels."""

    colors: Dict[int, RGB]
    labels: Dict[int, str] = field(default_factory=dict)

    @property
    def codes(self) -> Tuple[int, ...]:
        return tuple(self.colors)

    def __contains__(self, code) -> bool:
        return int(code) in self.colors

    def __len__(self) -> int:
        return len(self.colors)

    def rgb(self, code: int) -> RGB:
        return self.colors[int(code)]

    def hex(self, code: int) -> str:
        return rgb_to_hex(self.colors[int(code)])

    def label(self, code: int) -> str:
        return self.labels.get(int(code), str(code))

    def items(self):
        """Iterate (code, label, rgb) in table order."""
        for code, rgb in self.colors.items():
            yield code, self.label(code), rgb

    def restrict(self, codes: Iterable[int]) -> "ColorTable":
        """Return a table holding only ``codes``, in the order given."""
        codes = [int(c) for c in codes]
        missing = [c for c in codes if c not in self.colors]
        if missing:
            raise KeyError(f"Codes not in color table: {missing}")
        return ColorTable(
            colors={c: self.colors[c] for c in codes},
            labels={c: self.labels[c] for c in codes if c in self.labels},
        )


def extract_color_table(palette: Dict[int, tuple], black_policy: BlackPolicy = BlackPolicy()):
    """
    Build the full color table from a raster palette.

    Args:
        palette: Mapping of code -> (r, g, b[, a]) as read from the raster
        black_policy: Policy for pure-black entries (default: recolor to water blue)

    Returns:
        ColorTable with every palette code in ascending code order

    Raises:
        RasterLoadError: If the palette is empty or missing
    """
    if not palette:
        raise RasterLoadError("Raster has no embedded color table")

    colors = {}
    recolored = 0
    for code in sorted(palette):
        rgb = tuple(int(c) for c in palette[code][:3])
        mapped = black_policy.apply(rgb)
        if mapped != rgb:
            recolored += 1
        colors[int(code)] = mapped

    if recolored:
        logger.info(
            f"Recolored {recolored} pure-black palette entries to {black_policy.replacement}"
        )
    logger.info(f"Extracted color table with {len(colors)} entries")

    return ColorTable(colors=colors)


def curate_color_table(table: ColorTable, class_codes: Dict[str, int]) -> ColorTable:
    """
    Select and label the classes of interest.

    Args:
        table: Full color table from extract_color_table()
        class_codes: Ordered mapping of label -> class code
            (e.g. {"water": 1, "trees": 2, "crops": 5})

    Returns:
        ColorTable restricted to ``class_codes`` in the given order,
        labelled with their display names

    Raises:
        PaletteMismatchError: If a class code is absent from the palette
        ValueError: If two labels share one code
    """
    missing = {label: code for label, code in class_codes.items() if code not in table}
    if missing:
        raise PaletteMismatchError(f"Class codes not found in raster palette: {missing}")

    codes = list(class_codes.values())
    if len(set(codes)) != len(codes):
        raise ValueError(f"Class codes must be unique, got {class_codes}")

    curated = table.restrict(codes)
    labels = {int(code): display_label(label) for label, code in class_codes.items()}
    logger.debug(f"Curated color table: {labels}")
    return ColorTable(colors=curated.colors, labels=labels)


def display_label(label: str) -> str:
    """Turn a config key like 'built_area' into 'Built area'."""
    return label.replace("_", " ").capitalize()
