"""
Blender scene construction and rendering for the photorealistic terrain.

This module contains the Blender-specific code: the terrain mesh with
per-vertex land-cover colors, its material, the orbiting camera, sun and
HDRI world lighting, and the Cycles render call. It imports ``bpy`` at
module level, so load it only where Blender is available.
"""

import logging
from pathlib import Path

import bpy
import numpy as np
from mathutils import Vector

from src.landcover.errors import RenderFailure
from src.landcover.mesh_operations import (
    generate_faces,
    generate_vertex_positions,
    mesh_extent,
    orbit_camera_position,
)

logger = logging.getLogger(__name__)

COLOR_LAYER = "TerrainColors"


def clear_scene():
    """Reset Blender to an empty scene."""
    logger.info("Clearing Blender scene...")
    bpy.ops.wm.read_factory_settings(use_empty=True)

    for obj in list(bpy.data.objects):
        bpy.data.objects.remove(obj, do_unlink=True)


def apply_vertex_color_material(material: bpy.types.Material, roughness: float = 0.8) -> None:
    """
    Configure a Principled BSDF material that takes its base color from the
    terrain's vertex colors.

    Args:
        material: Blender material to configure
        roughness: Surface roughness (default: 0.8, matte ground)
    """
    material.use_nodes = True
    material.node_tree.nodes.clear()
    nodes = material.node_tree.nodes
    links = material.node_tree.links

    output = nodes.new("ShaderNodeOutputMaterial")
    principled = nodes.new("ShaderNodeBsdfPrincipled")
    vertex_color = nodes.new("ShaderNodeVertexColor")

    output.location = (400, 300)
    principled.location = (100, 300)
    vertex_color.location = (-200, 300)

    vertex_color.layer_name = COLOR_LAYER
    principled.inputs["Roughness"].default_value = roughness

    links.new(vertex_color.outputs["Color"], principled.inputs["Base Color"])
    links.new(principled.outputs["BSDF"], output.inputs["Surface"])

    logger.debug(f"Vertex color material configured for {material.name}")


def create_terrain_mesh(height, texture, name="Terrain"):
    """
    Create the terrain mesh object with the texture as vertex colors.

    Args:
        height (np.ndarray): Height matrix in cell units (NaN = no data)
        texture (np.ndarray): uint8 (H, W, 3) colors, same H x W as ``height``
        name (str): Mesh and object name

    Returns:
        bpy.types.Object: The linked terrain object
    """
    valid = ~np.isnan(height)
    positions, y_valid, x_valid = generate_vertex_positions(height, valid)
    faces = generate_faces(valid)
    logger.info(f"Creating Blender mesh with {len(positions)} vertices and {len(faces)} faces...")

    mesh = bpy.data.meshes.new(name)
    mesh.from_pydata(positions.tolist(), [], faces)
    mesh.update(calc_edges=True)

    colors = np.ones((len(positions), 4), dtype=np.float32)
    colors[:, :3] = texture[y_valid, x_valid].astype(np.float32) / 255.0
    layer = mesh.color_attributes.new(name=COLOR_LAYER, type="FLOAT_COLOR", domain="POINT")
    layer.data.foreach_set("color", colors.ravel())

    obj = bpy.data.objects.new(name, mesh)
    bpy.context.scene.collection.objects.link(obj)

    material = bpy.data.materials.new(name=f"{name}Material")
    obj.data.materials.append(material)
    apply_vertex_color_material(material)

    return obj


def setup_orbit_camera(terrain_obj, theta, phi, zoom, fov):
    """
    Place the camera on a sphere around the terrain, pointing at its centre.

    Args:
        terrain_obj: Terrain mesh object
        theta: Azimuth in degrees
        phi: Elevation in degrees (90 = straight down)
        zoom: Framing factor; smaller values move closer
        fov: Field of view in degrees; 0 gives an orthographic camera

    Returns:
        Camera object
    """
    corners = np.array([terrain_obj.matrix_world @ Vector(v) for v in terrain_obj.bound_box])
    center, diagonal = mesh_extent(corners)

    cam_data = bpy.data.cameras.new("Camera")
    cam_obj = bpy.data.objects.new("Camera", cam_data)
    bpy.context.scene.collection.objects.link(cam_obj)

    if fov > 0:
        cam_data.type = "PERSP"
        cam_data.angle = np.radians(fov)
        radius = diagonal * zoom / (2.0 * np.tan(np.radians(fov) / 2.0))
    else:
        cam_data.type = "ORTHO"
        cam_data.ortho_scale = diagonal * zoom
        radius = diagonal * 2.0
    cam_data.clip_end = radius + diagonal * 2.0

    location = orbit_camera_position(center, radius, theta, phi)
    cam_obj.location = tuple(location)
    direction = Vector(tuple(center - location)).normalized()
    cam_obj.rotation_euler = direction.to_track_quat("-Z", "Y").to_euler()

    bpy.context.scene.camera = cam_obj
    logger.info(
        f"{cam_data.type} camera at theta={theta}, phi={phi}, zoom={zoom} "
        f"(distance {radius:.1f})"
    )
    return cam_obj


def setup_sun(azimuth=315.0, altitude=45.0, energy=3.0, angle=2.0):
    """Add a sun lamp shining from the given azimuth/altitude in degrees."""
    sun = bpy.data.lights.new(name="Sun", type="SUN")
    sun.energy = energy
    sun.angle = np.radians(angle)
    sun_obj = bpy.data.objects.new("Sun", sun)
    bpy.context.scene.collection.objects.link(sun_obj)

    # Sun lamps shine along their local -Z axis
    source = orbit_camera_position((0.0, 0.0, 0.0), 1.0, 180.0 - azimuth, altitude)
    sun_obj.rotation_euler = Vector(tuple(-source)).to_track_quat("-Z", "Y").to_euler()
    return sun_obj


def setup_environment_lighting(environment_path, strength=1.0):
    """
    Light the world with an HDRI environment texture.

    Args:
        environment_path: Path to the .hdr/.exr file
        strength: Background emission strength

    Returns:
        bpy.types.World: The configured world
    """
    world = bpy.context.scene.world
    if world is None:
        world = bpy.data.worlds.new("World")
        bpy.context.scene.world = world

    world.use_nodes = True
    nodes = world.node_tree.nodes
    links = world.node_tree.links
    nodes.clear()

    output = nodes.new("ShaderNodeOutputWorld")
    background = nodes.new("ShaderNodeBackground")
    env_texture = nodes.new("ShaderNodeTexEnvironment")

    env_texture.image = bpy.data.images.load(str(environment_path), check_existing=True)
    background.inputs["Strength"].default_value = strength

    links.new(env_texture.outputs["Color"], background.inputs["Color"])
    links.new(background.outputs["Background"], output.inputs["Surface"])

    logger.info(f"World lit by environment map {Path(environment_path).name}")
    return world


def setup_render_settings(samples=256, use_gpu=False, use_denoising=True):
    """
    Configure Cycles for the terrain render.

    Args:
        samples: Path-tracing samples per pixel
        use_gpu: Try GPU rendering, falling back to CPU
        use_denoising: Enable the denoiser
    """
    scene = bpy.context.scene
    scene.render.engine = "CYCLES"

    scene.view_settings.view_transform = "Standard"
    scene.view_settings.look = "None"
    scene.display_settings.display_device = "sRGB"

    scene.render.image_settings.file_format = "PNG"
    scene.render.image_settings.color_mode = "RGBA"
    scene.render.film_transparent = True

    cycles = scene.cycles
    cycles.samples = samples
    cycles.use_denoising = use_denoising
    cycles.use_adaptive_sampling = True
    cycles.device = "CPU"

    if use_gpu:
        try:
            cprefs = bpy.context.preferences.addons["cycles"].preferences
            cprefs.get_devices()
            for device in cprefs.devices:
                device.use = True
            cycles.device = "GPU"
        except (KeyError, AttributeError, RuntimeError) as e:
            logger.warning(f"GPU rendering unavailable ({e}), using CPU")

    logger.info(f"Cycles configured: {samples} samples on {cycles.device}")


def render_scene_to_file(output_path, width, height):
    """
    Render the current scene to a PNG.

    Args:
        output_path: Destination image path
        width: Image width in pixels
        height: Image height in pixels

    Returns:
        Path to the rendered image

    Raises:
        RenderFailure: If Blender did not produce the file
    """
    output_path = Path(output_path).resolve()
    output_path.parent.mkdir(parents=True, exist_ok=True)

    render = bpy.context.scene.render
    render.filepath = str(output_path)
    render.resolution_x = width
    render.resolution_y = height
    render.resolution_percentage = 100

    logger.info(f"Rendering {width}x{height} to {output_path}")
    bpy.ops.render.render(write_still=True)

    if not output_path.exists():
        raise RenderFailure(f"Blender did not write {output_path}")

    size_mb = output_path.stat().st_size / (1024 * 1024)
    logger.info(f"Rendered successfully: {size_mb:.1f} MB")
    return output_path


def render_terrain(scene, environment_path, output_path, use_gpu=False):
    """
    Build and render a complete Blender scene from a composed Scene.

    Args:
        scene: Scene with height matrix, texture and RenderParams
        environment_path: HDRI used for world lighting
        output_path: Destination PNG
        use_gpu: Try GPU rendering

    Returns:
        Path to the rendered image
    """
    params = scene.params
    clear_scene()

    terrain = create_terrain_mesh(np.asarray(scene.height), np.asarray(scene.texture))
    setup_orbit_camera(terrain, params.theta, params.phi, params.zoom, params.fov)
    setup_sun(params.sun_azimuth, params.sun_altitude)
    setup_environment_lighting(environment_path)
    setup_render_settings(samples=params.samples, use_gpu=use_gpu)

    width, height = params.output_size(scene.height.shape)
    return render_scene_to_file(output_path, width, height)
