"""
Legend drawing and final compositing.

The legend lists the curated land-cover classes as color swatches with
labels on a transparent background. ``composite_legend`` pastes it onto
the rendered terrain without changing the render's dimensions.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import matplotlib.pyplot as plt
from matplotlib.patches import Patch
from PIL import Image

from src.config import DEFAULT_LEGEND_OFFSET, DEFAULT_LEGEND_WIDTH_FRACTION
from src.landcover.color_mapping import ColorTable, rgb_to_hex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegendEntry:
    label: str
    color: str  # hex "#rrggbb"


def legend_entries(table: ColorTable) -> List[LegendEntry]:
    """Legend entries in the curated table's order."""
    return [LegendEntry(label=label, color=rgb_to_hex(rgb)) for _, label, rgb in table.items()]


def draw_legend(
    entries: Sequence[LegendEntry],
    output_path,
    title: Optional[str] = None,
    fontsize: int = 14,
    dpi: int = 200,
) -> Path:
    """
    Draw swatches and labels onto a transparent canvas.

    Args:
        entries: Legend entries, drawn top to bottom
        output_path: Destination PNG
        title: Optional legend title
        fontsize: Label font size in points
        dpi: Output resolution

    Returns:
        Path to the legend image
    """
    if not entries:
        raise ValueError("Cannot draw a legend without entries")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    handles = [Patch(facecolor=e.color, edgecolor="none", label=e.label) for e in entries]

    fig = plt.figure(figsize=(3, 0.45 * len(entries) + (0.6 if title else 0.2)))
    fig.legend(
        handles=handles,
        loc="center",
        frameon=False,
        fontsize=fontsize,
        title=title,
        title_fontsize=fontsize + 2,
        handlelength=1.5,
        handleheight=1.5,
    )
    fig.savefig(output_path, dpi=dpi, transparent=True, bbox_inches="tight")
    plt.close(fig)

    logger.info(f"Saved legend with {len(entries)} entries: {output_path}")
    return output_path


def composite_legend(
    render_path,
    legend_path,
    output_path,
    width_fraction: float = DEFAULT_LEGEND_WIDTH_FRACTION,
    offset: Tuple[int, int] = DEFAULT_LEGEND_OFFSET,
) -> Path:
    """
    Overlay the legend onto the rendered image.

    The legend is scaled to ``width_fraction`` of the render width (keeping
    its aspect ratio) and pasted with its top-left corner at ``offset``.
    The output always has the render's dimensions; a legend that would
    spill over the edge is cropped.

    Args:
        render_path: Rendered terrain image
        legend_path: Transparent legend image
        output_path: Destination of the composite
        width_fraction: Legend width as a fraction of the render width
        offset: (x, y) pixel offset of the legend from the top-left corner

    Returns:
        Path to the composited image
    """
    if not 0.0 < width_fraction <= 1.0:
        raise ValueError(f"width_fraction must be in (0, 1], got {width_fraction}")

    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with Image.open(render_path) as render_image, Image.open(legend_path) as legend_image:
        base = render_image.convert("RGBA")
        legend = legend_image.convert("RGBA")

    legend_width = max(1, round(base.width * width_fraction))
    legend_height = max(1, round(legend.height * legend_width / legend.width))
    legend = legend.resize((legend_width, legend_height), Image.Resampling.LANCZOS)

    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))
    layer.paste(legend, (int(offset[0]), int(offset[1])))
    composite = Image.alpha_composite(base, layer)
    composite.save(output_path)

    logger.info(
        f"Composited legend ({legend_width}x{legend_height}) onto "
        f"{base.width}x{base.height} render: {output_path}"
    )
    return output_path
