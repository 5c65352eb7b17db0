"""
Mesh generation for the terrain renderer.

Turns a height matrix into vertex positions and faces, and places the
camera on a sphere around the mesh. Nothing here needs Blender, so the
geometry can be tested on its own.
"""

import numpy as np


def generate_vertex_positions(height_data, valid_mask=None, spacing=1.0):
    """
    Generate 3D vertex positions from a height matrix.

    One vertex per valid cell. Columns run along +X, rows along -Y (north
    stays up in the render), heights along +Z. The grid is centred on the
    origin.

    Args:
        height_data (np.ndarray): 2D array of heights (NaN = no data)
        valid_mask (np.ndarray, optional): Cells to keep (default: non-NaN cells)
        spacing (float): Horizontal distance between neighbouring cells

    Returns:
        tuple: (positions, y_valid, x_valid) where:
            - positions: np.ndarray of shape (n_valid, 3)
            - y_valid: row index of each vertex
            - x_valid: column index of each vertex
    """
    height, width = height_data.shape
    if valid_mask is None:
        valid_mask = ~np.isnan(height_data)

    y_indices, x_indices = np.mgrid[0:height, 0:width]
    y_valid = y_indices[valid_mask]
    x_valid = x_indices[valid_mask]

    positions = np.column_stack(
        [
            (x_valid - (width - 1) / 2.0) * spacing,
            ((height - 1) / 2.0 - y_valid) * spacing,
            height_data[valid_mask],
        ]
    ).astype(np.float32)

    return positions, y_valid, x_valid


def vertex_index_grid(valid_mask):
    """Grid holding each valid cell's vertex index, -1 elsewhere."""
    index = np.full(valid_mask.shape, -1, dtype=np.int64)
    index[valid_mask] = np.arange(int(valid_mask.sum()))
    return index


def generate_faces(valid_mask):
    """
    Generate mesh faces over the valid cells of a grid.

    Every 2x2 block of cells becomes a quad when all four corners are valid
    and a triangle when exactly three are. Blocks with fewer corners are
    skipped.

    Args:
        valid_mask (np.ndarray): Boolean grid of cells that have a vertex

    Returns:
        list: Face tuples of vertex indices (counter-clockwise seen from +Z)
    """
    if valid_mask.shape[0] < 2 or valid_mask.shape[1] < 2:
        return []

    index = vertex_index_grid(valid_mask)

    # Corner order: top-left, bottom-left, bottom-right, top-right
    corners = np.stack(
        [index[:-1, :-1], index[1:, :-1], index[1:, 1:], index[:-1, 1:]], axis=-1
    ).reshape(-1, 4)
    present = corners >= 0
    n_present = present.sum(axis=1)

    quads = corners[n_present == 4]
    partial = n_present == 3
    triangles = corners[partial][present[partial]].reshape(-1, 3)

    return [tuple(face) for face in quads.tolist()] + [tuple(face) for face in triangles.tolist()]


def orbit_camera_position(center, radius, theta, phi):
    """
    Camera location on a sphere around ``center``.

    Args:
        center: (x, y, z) point the camera looks at
        radius: Distance from the center
        theta: Azimuth in degrees; 0 looks north from the south side,
            90 looks west from the east side
        phi: Elevation in degrees above the horizon; 90 is straight down

    Returns:
        np.ndarray (x, y, z)
    """
    if not 0.0 < phi <= 90.0:
        raise ValueError(f"Camera elevation must be in (0, 90] degrees, got {phi}")

    theta_rad = np.radians(theta)
    phi_rad = np.radians(phi)
    offset = np.array(
        [
            np.sin(theta_rad) * np.cos(phi_rad),
            -np.cos(theta_rad) * np.cos(phi_rad),
            np.sin(phi_rad),
        ]
    )
    return np.asarray(center, dtype=np.float64) + radius * offset


def mesh_extent(positions):
    """Return (center, diagonal) of a vertex cloud."""
    mins = positions.min(axis=0)
    maxs = positions.max(axis=0)
    return (mins + maxs) / 2.0, float(np.linalg.norm(maxs - mins))
