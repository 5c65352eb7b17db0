"""
Scene composition and rendering.

The composer turns an AlignedPair into a Scene: a height matrix in
exaggerated cell units plus a texture of the same size (height-shaded
relief, land-cover overlay, optional hillshade). The flat height-shaded
image is written directly; the photorealistic render is delegated to an
injected ``TerrainRenderer``.

Usage:
    from src.landcover.scene import BlenderRenderer, RenderParams, SceneComposer

    composer = SceneComposer(BlenderRenderer())
    scene = composer.compose(pair, RenderParams(zscale=15))
    composer.render_height_shaded(scene, "terrain_height_shade.png")
    composer.render_photorealistic(scene, hdri_path, "terrain_render.png")
"""

import logging
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Tuple

import numpy as np
from PIL import Image

from src.config import (
    DEFAULT_CAMERA_PHI,
    DEFAULT_CAMERA_THETA,
    DEFAULT_CAMERA_ZOOM,
    DEFAULT_SAMPLES,
    DEFAULT_ZSCALE,
)
from src.landcover.artifacts import AlignedPair, Scene
from src.landcover.errors import LandcoverTerrainError, RenderFailure
from src.landcover.relief import add_overlay, add_shadow, height_shade
from src.landcover.transforms import scale_elevation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderParams:
    """
    Parameters shared by the height-shaded and photorealistic renders.

    Attributes:
        zscale: Vertical exaggeration applied to heights
        shadow: Darken the texture with a hillshade
        shadow_intensity: Hillshade strength in [0, 1]
        theta: Camera azimuth in degrees
        phi: Camera elevation in degrees (90 = straight down)
        zoom: Camera framing factor; smaller is closer
        fov: Field of view in degrees; 0 for an orthographic camera
        sun_azimuth: Sun direction in degrees clockwise from north
        sun_altitude: Sun height above the horizon in degrees
        samples: Path-tracing samples for the photorealistic render
        image_scale: Output pixels per DEM cell
        cmap_name: Matplotlib colormap for the height shade
    """

    zscale: float = DEFAULT_ZSCALE
    shadow: bool = True
    shadow_intensity: float = 0.5
    theta: float = DEFAULT_CAMERA_THETA
    phi: float = DEFAULT_CAMERA_PHI
    zoom: float = DEFAULT_CAMERA_ZOOM
    fov: float = 0.0
    sun_azimuth: float = 315.0
    sun_altitude: float = 45.0
    samples: int = DEFAULT_SAMPLES
    image_scale: float = 1.0
    cmap_name: str = "terrain"

    def __post_init__(self):
        if self.zscale <= 0:
            raise ValueError(f"zscale must be positive, got {self.zscale}")
        if not 0.0 <= self.shadow_intensity <= 1.0:
            raise ValueError(f"shadow_intensity must be in [0, 1], got {self.shadow_intensity}")
        if not 0.0 < self.phi <= 90.0:
            raise ValueError(f"phi must be in (0, 90], got {self.phi}")
        if self.zoom <= 0:
            raise ValueError(f"zoom must be positive, got {self.zoom}")
        if not 0.0 <= self.fov < 180.0:
            raise ValueError(f"fov must be in [0, 180), got {self.fov}")
        if self.samples < 1:
            raise ValueError(f"samples must be at least 1, got {self.samples}")
        if self.image_scale <= 0:
            raise ValueError(f"image_scale must be positive, got {self.image_scale}")

    def output_size(self, shape: Tuple[int, int]) -> Tuple[int, int]:
        """Output (width, height) in pixels for a height matrix of ``shape``."""
        rows, cols = shape
        return max(1, round(cols * self.image_scale)), max(1, round(rows * self.image_scale))


class TerrainRenderer:
    """Capability interface: render a Scene lit by an environment map."""

    def render(self, scene: Scene, environment_path, output_path) -> Path:
        raise NotImplementedError


class BlenderRenderer(TerrainRenderer):
    """
    Photorealistic renderer backed by Blender's Cycles engine.

    Blender is imported when rendering, so the rest of the pipeline runs
    without it.
    """

    def __init__(self, use_gpu: bool = False):
        self.use_gpu = use_gpu

    def render(self, scene: Scene, environment_path, output_path) -> Path:
        try:
            from src.landcover import blender_scene
        except ImportError as e:
            raise RenderFailure(f"Blender (bpy) is not available: {e}") from e

        return blender_scene.render_terrain(
            scene, environment_path, output_path, use_gpu=self.use_gpu
        )


class SceneComposer:
    """
    Build scenes from aligned rasters and drive the renderer.

    Args:
        renderer: TerrainRenderer used for photorealistic output
    """

    def __init__(self, renderer: TerrainRenderer):
        self.renderer = renderer

    def compose(self, pair: AlignedPair, params: RenderParams) -> Scene:
        """
        Compose the height matrix and draped texture.

        Heights are divided by the cell size and multiplied by ``zscale``,
        so one horizontal cell is one unit and relief is exaggerated
        uniformly.

        Args:
            pair: Aligned color and elevation rasters
            params: Render parameters

        Returns:
            Scene whose texture has the height matrix's dimensions
        """
        elevation = pair.elevation
        cell_size = float(abs(pair.transform.a))
        height, _, _ = scale_elevation(params.zscale / cell_size)(elevation.data)

        texture = height_shade(elevation.data, params.cmap_name)
        texture = add_overlay(texture, pair.color, alpha=1.0)
        if params.shadow and params.shadow_intensity > 0:
            texture = add_shadow(
                texture,
                height,
                intensity=params.shadow_intensity,
                azimuth=params.sun_azimuth,
                altitude=params.sun_altitude,
            )

        logger.info(
            f"Composed scene {height.shape} (cell {cell_size:.1f}, zscale {params.zscale})"
        )
        return Scene(
            height=height,
            texture=texture,
            params=params,
            metadata={
                "crs": str(pair.crs),
                "transform": tuple(pair.transform)[:6],
                "cell_size": cell_size,
                "render_params": asdict(params),
            },
        )

    def render_height_shaded(self, scene: Scene, output_path) -> Path:
        """
        Write the flat height-shaded texture at the output size.

        Returns:
            Path to the PNG
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        size = scene.params.output_size(scene.height.shape)
        image = Image.fromarray(np.asarray(scene.texture))
        if image.size != size:
            image = image.resize(size, Image.Resampling.NEAREST)
        image.save(output_path)

        logger.info(f"Saved height-shaded image {size[0]}x{size[1]}: {output_path}")
        return output_path

    def render_photorealistic(self, scene: Scene, environment_path, output_path) -> Path:
        """
        Render the scene with the injected renderer.

        Raises:
            RenderFailure: If the renderer fails or writes no image
        """
        logger.info(f"Photorealistic render via {type(self.renderer).__name__}")
        try:
            result = self.renderer.render(scene, environment_path, output_path)
        except LandcoverTerrainError:
            raise
        except Exception as e:
            raise RenderFailure(f"Renderer failed: {e}") from e

        if result is None or not Path(result).exists():
            raise RenderFailure(f"Renderer produced no image at {output_path}")
        return Path(result)
