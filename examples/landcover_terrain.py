#!/usr/bin/env python3
"""
Example: Land-cover terrain map for one region.

Clips an ESRI 10 m land-cover tile to a country (or admin area) boundary,
drapes its class colors over the terrain and renders a 3D map with legend.

Usage:
    # Show execution plan (dry run)
    python examples/landcover_terrain.py data/landcover/32T_2022.tif --region CHE --explain

    # Full run with Blender rendering
    python examples/landcover_terrain.py data/landcover/32T_2022.tif --region CHE

    # Everything except the photorealistic render (no Blender needed)
    python examples/landcover_terrain.py data/landcover/32T_2022.tif --region CHE --skip-render

Examples:
    # Canton-level boundary, stronger relief, oblique view from the south-west
    python examples/landcover_terrain.py tile.tif --region CHE --level 1 \\
        --zscale 25 --theta -45 --phi 40

    # Full-resolution land cover and a finer DEM
    python examples/landcover_terrain.py tile.tif --region LIE --aggregate 1 --zoom 11
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.config import (
    DEFAULT_AGGREGATION_FACTOR,
    DEFAULT_CAMERA_PHI,
    DEFAULT_CAMERA_THETA,
    DEFAULT_CAMERA_ZOOM,
    DEFAULT_GADM_LEVEL,
    DEFAULT_HDRI_URL,
    DEFAULT_LOG_LEVEL,
    DEFAULT_SAMPLES,
    DEFAULT_ZOOM,
    DEFAULT_ZSCALE,
    OUTPUT_DIR,
)
from src.landcover.boundary import GADMBoundaryProvider
from src.landcover.color_mapping import KEEP_BLACK, BlackPolicy
from src.landcover.dem_downloader import TerrainTilesElevationProvider
from src.landcover.errors import LandcoverTerrainError
from src.landcover.pipeline import LandcoverTerrainPipeline, PipelineConfig
from src.landcover.scene import BlenderRenderer, RenderParams
from src.utils.helpers import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a land-cover map draped over 3D terrain for one region"
    )

    parser.add_argument("raster", type=Path, help="Categorical land-cover GeoTIFF")
    parser.add_argument(
        "--region", "-r", required=True, help="ISO3 region code, e.g. CHE"
    )
    parser.add_argument(
        "--level",
        type=int,
        default=DEFAULT_GADM_LEVEL,
        help=f"GADM administrative level (default: {DEFAULT_GADM_LEVEL})",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=OUTPUT_DIR,
        help=f"Directory for all outputs (default: {OUTPUT_DIR})",
    )
    parser.add_argument(
        "--explain", action="store_true", help="Show execution plan without running"
    )

    # Processing parameters
    parser.add_argument(
        "--aggregate",
        type=int,
        default=DEFAULT_AGGREGATION_FACTOR,
        help=f"Majority-vote aggregation factor (default: {DEFAULT_AGGREGATION_FACTOR})",
    )
    parser.add_argument(
        "--zoom",
        type=int,
        default=DEFAULT_ZOOM,
        help=f"Terrain tile zoom level 0-14 (default: {DEFAULT_ZOOM})",
    )
    parser.add_argument(
        "--keep-black",
        action="store_true",
        help="Keep pure-black palette entries instead of recoloring them as water",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Fail when the raster holds classes outside the legend",
    )

    # Render parameters
    parser.add_argument(
        "--zscale",
        type=float,
        default=DEFAULT_ZSCALE,
        help=f"Vertical exaggeration (default: {DEFAULT_ZSCALE})",
    )
    parser.add_argument(
        "--no-shadow", action="store_false", dest="shadow", help="Disable hillshade"
    )
    parser.add_argument(
        "--shadow-intensity", type=float, default=0.5, help="Hillshade strength 0-1 (default: 0.5)"
    )
    parser.add_argument(
        "--theta",
        type=float,
        default=DEFAULT_CAMERA_THETA,
        help=f"Camera azimuth in degrees (default: {DEFAULT_CAMERA_THETA})",
    )
    parser.add_argument(
        "--phi",
        type=float,
        default=DEFAULT_CAMERA_PHI,
        help=f"Camera elevation in degrees (default: {DEFAULT_CAMERA_PHI})",
    )
    parser.add_argument(
        "--camera-zoom",
        type=float,
        default=DEFAULT_CAMERA_ZOOM,
        help=f"Camera framing factor (default: {DEFAULT_CAMERA_ZOOM})",
    )
    parser.add_argument(
        "--fov", type=float, default=0.0, help="Field of view in degrees, 0 = orthographic"
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=DEFAULT_SAMPLES,
        help=f"Render samples (default: {DEFAULT_SAMPLES})",
    )
    parser.add_argument(
        "--image-scale", type=float, default=1.0, help="Output pixels per DEM cell (default: 1)"
    )
    parser.add_argument("--hdri-url", default=DEFAULT_HDRI_URL, help="Environment map URL")
    parser.add_argument("--gpu", action="store_true", help="Render on the GPU if available")
    parser.add_argument(
        "--skip-render",
        action="store_true",
        help="Skip the Blender render; composite the legend onto the height shade",
    )
    parser.add_argument("--title", default=None, help="Legend title")

    parser.add_argument(
        "--log-level",
        default=DEFAULT_LOG_LEVEL,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help=f"Console log level (default: {DEFAULT_LOG_LEVEL})",
    )

    return parser.parse_args(argv)


def build_pipeline(args):
    """Create the pipeline with network providers and the Blender renderer."""
    render = RenderParams(
        zscale=args.zscale,
        shadow=args.shadow,
        shadow_intensity=args.shadow_intensity,
        theta=args.theta,
        phi=args.phi,
        zoom=args.camera_zoom,
        fov=args.fov,
        samples=args.samples,
        image_scale=args.image_scale,
    )
    config = PipelineConfig(
        raster_path=args.raster,
        region_code=args.region,
        level=args.level,
        output_dir=args.output_dir,
        aggregation_factor=args.aggregate,
        zoom=args.zoom,
        render=render,
        black_policy=KEEP_BLACK if args.keep_black else BlackPolicy(),
        strict_categories=args.strict,
        hdri_url=args.hdri_url,
        legend_title=args.title,
        skip_render=args.skip_render,
    )
    return LandcoverTerrainPipeline(
        config,
        boundary_provider=GADMBoundaryProvider(),
        elevation_provider=TerrainTilesElevationProvider(),
        renderer=BlenderRenderer(use_gpu=args.gpu),
    )


def main(argv=None):
    """Run the pipeline."""
    args = parse_args(argv)
    setup_logging(level=args.log_level)

    try:
        pipeline = build_pipeline(args)
    except ValueError as e:
        logger.error(f"Invalid parameters: {e}")
        return 2

    if args.explain:
        pipeline.explain("composite")
        return 0

    try:
        result = pipeline.run()
    except LandcoverTerrainError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    except ValueError as e:
        logger.error(f"Invalid input: {e}")
        return 1

    print("\n" + "=" * 70)
    print("Outputs")
    print("=" * 70)
    for name, path in result.paths.items():
        print(f"  {name:<18} {path}")
    print(f"\nFinal image: {result.final_image}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
