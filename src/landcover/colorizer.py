"""
Replace categorical codes with their colors.

Cells whose code is missing from the color table are dropped (left
transparent), not painted black: the source raster usually carries more
classes than a map needs to show.
"""

import logging
from pathlib import Path

import numpy as np
from PIL import Image

from src.landcover.artifacts import CategoricalRaster, ColorRaster
from src.landcover.color_mapping import ColorTable
from src.landcover.errors import UnmappedCategoryError

logger = logging.getLogger(__name__)


def colorize(raster: CategoricalRaster, table: ColorTable, strict: bool = False) -> ColorRaster:
    """
    Substitute class codes with RGB triples.

    Args:
        raster: Aggregated categorical raster
        table: Color table restricted to the codes to draw
        strict: Raise UnmappedCategoryError instead of dropping unmapped codes

    Returns:
        ColorRaster on the same grid and CRS as ``raster``. Nodata cells and
        cells with unmapped codes have mask False and RGB (0, 0, 0).

    Raises:
        UnmappedCategoryError: Only when ``strict`` is True and the raster
            holds codes the table does not cover
    """
    data = raster.data
    valid = data != raster.nodata

    present = raster.codes()
    unmapped = [int(c) for c in present if c not in table]
    if unmapped:
        if strict:
            raise UnmappedCategoryError(unmapped)
        counts = {code: int(np.count_nonzero(data == code)) for code in unmapped}
        logger.warning(f"Dropping cells with codes missing from the color table: {counts}")

    # Lookup table indexed by code; unmapped codes stay masked.
    # Sized from valid cells so a large nodata sentinel does not inflate it.
    data_max = int(data[valid].max()) if valid.any() else 0
    max_code = max(data_max, max(table.codes, default=0))
    lut = np.zeros((max_code + 1, 3), dtype=np.uint8)
    mapped = np.zeros(max_code + 1, dtype=bool)
    for code, rgb in table.colors.items():
        if 0 <= code <= max_code:
            lut[code] = rgb
            mapped[code] = True

    index = np.clip(data.astype(np.int64), 0, max_code)
    mask = valid & mapped[index] & (data >= 0)
    rgb = np.moveaxis(lut[index], -1, 0)
    rgb[:, ~mask] = 0

    logger.info(
        f"Colorized {int(mask.sum())} of {mask.size} cells "
        f"with {len(table)} classes ({int(valid.sum() - mask.sum())} dropped)"
    )
    return ColorRaster(rgb=rgb, mask=mask, transform=raster.transform, crs=raster.crs)


def save_color_preview(raster: ColorRaster, output_path, background=(255, 255, 255)) -> Path:
    """
    Save the flattened land-cover colors as a PNG.

    Args:
        raster: Color raster to preview
        output_path: Destination PNG path
        background: RGB fill for dropped cells (default: white)

    Returns:
        Path to the written image
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    image = Image.fromarray(raster.to_rgba_image())
    canvas = Image.new("RGBA", image.size, (*background, 255))
    canvas.alpha_composite(image)
    canvas.convert("RGB").save(output_path)

    logger.info(f"Saved land-cover preview: {output_path}")
    return output_path
