"""
Dependency graph pipeline for the land-cover terrain map.

Threads each stage's artifact into the next, writing every intermediate
result to the output directory before the following stage runs. External
services (boundaries, elevation, renderer, environment map) are passed in
as capabilities.

Example:
    from src.landcover.boundary import GADMBoundaryProvider
    from src.landcover.dem_downloader import TerrainTilesElevationProvider
    from src.landcover.pipeline import LandcoverTerrainPipeline, PipelineConfig
    from src.landcover.scene import BlenderRenderer

    config = PipelineConfig(raster_path="data/landcover/32T_2022.tif", region_code="CHE")
    pipeline = LandcoverTerrainPipeline(
        config,
        boundary_provider=GADMBoundaryProvider(),
        elevation_provider=TerrainTilesElevationProvider(),
        renderer=BlenderRenderer(),
    )
    pipeline.explain("composite")
    result = pipeline.run()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from src.config import (
    ALIGNED_COLOR_NAME,
    ALIGNED_DEM_NAME,
    BOUNDARY_PREVIEW_NAME,
    CLIPPED_RASTER_NAME,
    CLIPPED_VRT_NAME,
    COLOR_PREVIEW_NAME,
    COLOR_RASTER_NAME,
    DEFAULT_AGGREGATION_FACTOR,
    DEFAULT_GADM_LEVEL,
    DEFAULT_HDRI_URL,
    DEFAULT_LEGEND_OFFSET,
    DEFAULT_LEGEND_WIDTH_FRACTION,
    DEFAULT_ZOOM,
    DEM_RASTER_NAME,
    ESRI_CLASS_CODES,
    FINAL_NAME,
    HEIGHT_SHADE_NAME,
    LEGEND_CLASSES,
    LEGEND_NAME,
    MAX_ZOOM,
    OUTPUT_DIR,
    RENDER_NAME,
)
from src.landcover.alignment import align, equal_area_crs_for
from src.landcover.boundary import BoundaryProvider, resolve_boundary, save_boundary_preview
from src.landcover.clipping import clip_and_aggregate
from src.landcover.color_mapping import BlackPolicy, curate_color_table, extract_color_table
from src.landcover.colorizer import colorize, save_color_preview
from src.landcover.data_loading import (
    read_palette,
    write_categorical_raster,
    write_color_raster,
    write_elevation_raster,
    write_virtual_mosaic,
)
from src.landcover.dem_downloader import ElevationProvider
from src.landcover.environment import fetch_environment_map
from src.landcover.legend import composite_legend, draw_legend, legend_entries
from src.landcover.scene import RenderParams, SceneComposer, TerrainRenderer

logger = logging.getLogger(__name__)


def default_class_codes() -> Dict[str, int]:
    """Every ESRI land-cover class, in code order."""
    return dict(ESRI_CLASS_CODES)


def default_legend_classes() -> List[str]:
    return list(LEGEND_CLASSES)


@dataclass
class PipelineConfig:
    """Run parameters for one region and one land-cover snapshot."""

    raster_path: Path
    region_code: str
    level: int = DEFAULT_GADM_LEVEL
    output_dir: Path = OUTPUT_DIR
    aggregation_factor: int = DEFAULT_AGGREGATION_FACTOR
    zoom: int = DEFAULT_ZOOM
    render: RenderParams = field(default_factory=RenderParams)
    class_codes: Dict[str, int] = field(default_factory=default_class_codes)
    legend_classes: List[str] = field(default_factory=default_legend_classes)
    black_policy: BlackPolicy = field(default_factory=BlackPolicy)
    strict_categories: bool = False
    hdri_url: str = DEFAULT_HDRI_URL
    legend_title: Optional[str] = None
    legend_width_fraction: float = DEFAULT_LEGEND_WIDTH_FRACTION
    legend_offset: Tuple[int, int] = DEFAULT_LEGEND_OFFSET
    skip_render: bool = False

    def __post_init__(self):
        self.raster_path = Path(self.raster_path)
        self.output_dir = Path(self.output_dir)
        if self.aggregation_factor < 1:
            raise ValueError(f"aggregation_factor must be >= 1, got {self.aggregation_factor}")
        if not 0 <= self.zoom <= MAX_ZOOM:
            raise ValueError(f"zoom must be between 0 and {MAX_ZOOM}, got {self.zoom}")
        if not self.class_codes:
            raise ValueError("class_codes must name at least one class")
        unknown = [label for label in self.legend_classes if label not in self.class_codes]
        if unknown:
            raise ValueError(f"legend_classes not in class_codes: {unknown}")

    @property
    def legend_codes(self) -> Dict[str, int]:
        """Subset of ``class_codes`` shown in the legend, in legend order."""
        return {label: self.class_codes[label] for label in self.legend_classes}

    def output_path(self, name: str) -> Path:
        return self.output_dir / name


@dataclass
class PipelineResult:
    """Artifacts and output files of a completed run."""

    paths: Dict[str, Path] = field(default_factory=dict)
    artifacts: Dict[str, Any] = field(default_factory=dict)

    @property
    def final_image(self) -> Optional[Path]:
        return self.paths.get("composite")


class LandcoverTerrainPipeline:
    """
    Runs the land-cover terrain stages in dependency order.

    Tasks in pipeline:
    1. map_colors: Color tables from the raster palette, checked before any download
    2. resolve_boundary: Region geometry from the boundary provider
    3. clip_landcover: Clip, aggregate and reproject the land-cover raster
    4. colorize: Replace class codes with colors
    5. fetch_elevation: DEM covering the boundary
    6. align: Common equal-area grid for colors and heights
    7. compose_scene: Height matrix and draped texture
    8. render: Height-shaded and photorealistic images
    9. legend: Legend for the curated classes
    10. composite: Legend pasted onto the render
    """

    def __init__(
        self,
        config: PipelineConfig,
        *,
        boundary_provider: BoundaryProvider,
        elevation_provider: ElevationProvider,
        renderer: TerrainRenderer,
        environment_fetcher: Callable[[str], Path] = fetch_environment_map,
        verbose: bool = True,
    ):
        self.config = config
        self.boundary_provider = boundary_provider
        self.elevation_provider = elevation_provider
        self.composer = SceneComposer(renderer)
        self.environment_fetcher = environment_fetcher
        self.verbose = verbose

        self.result = PipelineResult()

        self._task_graph = {
            "resolve_boundary": {
                "depends_on": [],
                "description": "Resolve region boundary geometry",
            },
            "clip_landcover": {
                "depends_on": ["resolve_boundary"],
                "description": "Clip, aggregate and reproject land cover",
            },
            "map_colors": {
                "depends_on": [],
                "description": "Extract and curate the palette color table",
            },
            "colorize": {
                "depends_on": ["map_colors", "clip_landcover"],
                "description": "Replace class codes with colors",
            },
            "fetch_elevation": {
                "depends_on": ["resolve_boundary"],
                "description": "Fetch DEM covering the boundary",
            },
            "align": {
                "depends_on": ["colorize", "fetch_elevation"],
                "description": "Align colors and DEM in an equal-area projection",
            },
            "compose_scene": {
                "depends_on": ["align"],
                "description": "Build height matrix and draped texture",
            },
            "render": {
                "depends_on": ["compose_scene"],
                "description": "Render height-shaded and photorealistic images",
            },
            "legend": {
                "depends_on": ["map_colors"],
                "description": "Draw the class legend",
            },
            "composite": {
                "depends_on": ["render", "legend"],
                "description": "Paste the legend onto the render",
            },
        }
        self._tasks = {
            "resolve_boundary": self.resolve_boundary,
            "clip_landcover": self.clip_landcover,
            "map_colors": self.map_colors,
            "colorize": self.colorize,
            "fetch_elevation": self.fetch_elevation,
            "align": self.align,
            "compose_scene": self.compose_scene,
            "render": self.render,
            "legend": self.legend,
            "composite": self.composite,
        }

    def _log(self, msg: str, *args, level: str = "info"):
        """Log message if verbose with lazy formatting."""
        if self.verbose:
            getattr(logger, level)(msg, *args)

    def _record(self, key: str, path: Path) -> Path:
        self.result.paths[key] = Path(path)
        return Path(path)

    def _artifact(self, name: str):
        try:
            return self.result.artifacts[name]
        except KeyError:
            raise RuntimeError(f"Task output '{name}' is not available yet") from None

    # ===== Pipeline Tasks =====

    def resolve_boundary(self):
        cfg = self.config
        self._log("[2/10] Resolving boundary %s (level %d)", cfg.region_code, cfg.level)
        boundary = resolve_boundary(cfg.region_code, cfg.level, self.boundary_provider)
        self.result.artifacts["boundary"] = boundary
        self._record(
            "boundary_preview",
            save_boundary_preview(boundary, cfg.output_path(BOUNDARY_PREVIEW_NAME)),
        )
        return boundary

    def clip_landcover(self):
        cfg = self.config
        self._log("[3/10] Clipping land cover %s", cfg.raster_path.name)
        landcover = clip_and_aggregate(
            cfg.raster_path, self._artifact("boundary"), factor=cfg.aggregation_factor
        )
        self.result.artifacts["landcover"] = landcover

        tif = self._record(
            "clipped_raster",
            write_categorical_raster(landcover, cfg.output_path(CLIPPED_RASTER_NAME)),
        )
        self._record("clipped_vrt", write_virtual_mosaic(tif, cfg.output_path(CLIPPED_VRT_NAME)))
        return landcover

    def map_colors(self):
        cfg = self.config
        self._log("[1/10] Checking palette colors")
        # Palette of the source raster, before any resampling
        full_table = extract_color_table(read_palette(cfg.raster_path), cfg.black_policy)
        class_table = curate_color_table(full_table, cfg.class_codes)
        legend_table = curate_color_table(full_table, cfg.legend_codes)
        self.result.artifacts["color_table"] = full_table
        self.result.artifacts["class_table"] = class_table
        self.result.artifacts["legend_table"] = legend_table
        self._log("      Classes: %s", ", ".join(label for _, label, _ in class_table.items()))
        return class_table

    def colorize(self):
        cfg = self.config
        self._log("[4/10] Colorizing land cover")
        colors = colorize(
            self._artifact("landcover"),
            self._artifact("class_table"),
            strict=cfg.strict_categories,
        )
        self.result.artifacts["colors"] = colors
        self._record("color_raster", write_color_raster(colors, cfg.output_path(COLOR_RASTER_NAME)))
        self._record(
            "color_preview", save_color_preview(colors, cfg.output_path(COLOR_PREVIEW_NAME))
        )
        return colors

    def fetch_elevation(self):
        cfg = self.config
        self._log("[5/10] Fetching elevation (zoom %d)", cfg.zoom)
        dem = self.elevation_provider.fetch(self._artifact("boundary"), cfg.zoom)
        self.result.artifacts["dem"] = dem
        self._record("dem", write_elevation_raster(dem, cfg.output_path(DEM_RASTER_NAME)))
        return dem

    def align(self):
        cfg = self.config
        self._log("[6/10] Aligning colors with DEM")
        dst_crs = equal_area_crs_for(self._artifact("boundary"))
        pair = align(self._artifact("dem"), self._artifact("colors"), dst_crs)
        self.result.artifacts["aligned"] = pair
        self._record(
            "aligned_dem", write_elevation_raster(pair.elevation, cfg.output_path(ALIGNED_DEM_NAME))
        )
        self._record(
            "aligned_color", write_color_raster(pair.color, cfg.output_path(ALIGNED_COLOR_NAME))
        )
        return pair

    def compose_scene(self):
        self._log("[7/10] Composing scene")
        scene = self.composer.compose(self._artifact("aligned"), self.config.render)
        self.result.artifacts["scene"] = scene
        return scene

    def render(self):
        cfg = self.config
        scene = self._artifact("scene")
        self._log("[8/10] Rendering")
        self._record(
            "height_shade",
            self.composer.render_height_shaded(scene, cfg.output_path(HEIGHT_SHADE_NAME)),
        )

        if cfg.skip_render:
            self._log("      Photorealistic render skipped", level="warning")
            return self.result.paths["height_shade"]

        environment = self.environment_fetcher(cfg.hdri_url)
        self._record("environment", environment)
        return self._record(
            "render",
            self.composer.render_photorealistic(scene, environment, cfg.output_path(RENDER_NAME)),
        )

    def legend(self):
        cfg = self.config
        self._log("[9/10] Drawing legend")
        entries = legend_entries(self._artifact("legend_table"))
        return self._record(
            "legend", draw_legend(entries, cfg.output_path(LEGEND_NAME), title=cfg.legend_title)
        )

    def composite(self):
        cfg = self.config
        base = self.result.paths.get("render") or self.result.paths["height_shade"]
        self._log("[10/10] Compositing legend onto %s", base.name)
        return self._record(
            "composite",
            composite_legend(
                base,
                self.result.paths["legend"],
                cfg.output_path(FINAL_NAME),
                width_fraction=cfg.legend_width_fraction,
                offset=cfg.legend_offset,
            ),
        )

    # ===== Execution =====

    def run(self, target: str = "composite") -> PipelineResult:
        """
        Execute ``target`` and everything it depends on, in order.

        Returns:
            PipelineResult with the paths of every written artifact
        """
        if target not in self._task_graph:
            raise ValueError(
                f"Unknown task: {target}. Available: {', '.join(self._task_graph)}"
            )

        self.config.output_dir.mkdir(parents=True, exist_ok=True)
        for task in self._compute_execution_order(target):
            self._tasks[task]()

        self._log("Pipeline finished: %d files in %s", len(self.result.paths), self.config.output_dir)
        return self.result

    def explain(self, task_name: str = "composite") -> None:
        """
        Explain what would execute to build a task (show dependency tree).
        """
        if task_name not in self._task_graph:
            print(f"\nUnknown task: {task_name}")
            print(f"Available tasks: {', '.join(self._task_graph.keys())}")
            return

        print("\n" + "=" * 70)
        print(f"Execution Plan for: {task_name}")
        print("=" * 70 + "\n")

        task_info = self._task_graph[task_name]
        print(f"Task: {task_name}")
        print(f"Description: {task_info['description']}")

        if task_info["depends_on"]:
            print("\nDependencies:")
            for dep in task_info["depends_on"]:
                print(f"  - {dep}")

        order = self._compute_execution_order(task_name)
        print("\nExecution order (topological):")
        for i, task in enumerate(order, 1):
            print(f"  {i}. {task} - {self._task_graph[task]['description']}")

    def _compute_execution_order(self, task_name: str) -> List[str]:
        """Topologically sort tasks by dependency."""
        visited = set()
        order = []

        def visit(task: str):
            if task in visited:
                return
            visited.add(task)
            for dep in self._task_graph[task]["depends_on"]:
                visit(dep)
            order.append(task)

        visit(task_name)
        return order
