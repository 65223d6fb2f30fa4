"""Geometry statistics derived directly from GLB bytes.

Bounds come from POSITION accessor min/max when any accessor provides them,
otherwise from the float32 vertex data in the BIN chunk. Summaries never
raise: missing or malformed glTF fields count as zero.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set, Tuple

import structlog

from kernel.errors import (
    BoundsComputationError,
    GlbFormatError,
    MissingBinForBoundsError,
    MissingMeshesOrAccessorsError,
)

from .container import read_bin_chunk, read_gltf_json

logger = structlog.get_logger(__name__)

MODE_TRIANGLES = 4
COMPONENT_TYPE_FLOAT = 5126
VEC3_STRIDE = 12

_VEC3 = struct.Struct("<3f")

Vector3 = Tuple[float, float, float]


@dataclass(frozen=True)
class GlbBounds:
    """Axis-aligned bounds in GLB units."""

    min: Vector3
    max: Vector3

    def max_dimension(self) -> float:
        """Largest extent along any axis."""
        return max(abs(self.max[axis] - self.min[axis]) for axis in range(3))


@dataclass(frozen=True)
class GlbGeometryStats:
    """Mesh and node counts for a GLB."""

    triangles: int = 0
    mesh_count: int = 0
    node_count: int = 0
    primitive_count: int = 0
    nodes_with_mesh_count: int = 0
    primitives_with_position_count: int = 0


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _list_field(document: Dict[str, Any], key: str) -> List[Any]:
    value = document.get(key)
    return value if isinstance(value, list) else []


def _primitives(mesh: Any) -> List[Any]:
    if not isinstance(mesh, dict):
        return []
    primitives = mesh.get("primitives")
    return primitives if isinstance(primitives, list) else []


def _position_index(primitive: Any) -> Optional[int]:
    if not isinstance(primitive, dict):
        return None
    attributes = primitive.get("attributes")
    if not isinstance(attributes, dict):
        return None
    index = attributes.get("POSITION")
    return index if _is_index(index) else None


def _lookup(items: List[Any], index: Any) -> Optional[Dict[str, Any]]:
    if not _is_index(index) or not 0 <= index < len(items):
        return None
    item = items[index]
    return item if isinstance(item, dict) else None


def _finite(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _int_field(item: Dict[str, Any], key: str, default: int) -> int:
    value = _finite(item.get(key))
    return default if value is None else int(value)


class _BoundsAccumulator:
    def __init__(self) -> None:
        self.mins = [math.inf, math.inf, math.inf]
        self.maxs = [-math.inf, -math.inf, -math.inf]
        self.used = False

    def add_min_max(self, lo: Any, hi: Any) -> bool:
        if not isinstance(lo, list) or not isinstance(hi, list) or len(lo) < 3 or len(hi) < 3:
            return False
        pairs = [(_finite(lo[axis]), _finite(hi[axis])) for axis in range(3)]
        if any(a is None or b is None for a, b in pairs):
            return False
        for axis, (a, b) in enumerate(pairs):
            self.mins[axis] = min(self.mins[axis], a)
            self.maxs[axis] = max(self.maxs[axis], b)
        self.used = True
        return True

    def add_point(self, point: Vector3) -> None:
        for axis in range(3):
            self.mins[axis] = min(self.mins[axis], point[axis])
            self.maxs[axis] = max(self.maxs[axis], point[axis])
        self.used = True

    def result(self) -> GlbBounds:
        if not self.used or not all(math.isfinite(v) for v in self.mins + self.maxs):
            raise BoundsComputationError("Failed to compute bounds")
        return GlbBounds(min=tuple(self.mins), max=tuple(self.maxs))


def _position_accessor_indices(meshes: List[Any]) -> List[int]:
    seen: Set[int] = set()
    ordered: List[int] = []
    for mesh in meshes:
        for primitive in _primitives(mesh):
            index = _position_index(primitive)
            if index is not None and index not in seen:
                seen.add(index)
                ordered.append(index)
    return ordered


def _fold_bin_positions(
    accumulator: _BoundsAccumulator,
    accessor: Dict[str, Any],
    buffer_views: List[Any],
    bin_data: bytes,
) -> None:
    if accessor.get("type") != "VEC3" or accessor.get("componentType") != COMPONENT_TYPE_FLOAT:
        return
    view = _lookup(buffer_views, accessor.get("bufferView"))
    if view is None:
        return

    start = _int_field(view, "byteOffset", 0) + _int_field(accessor, "byteOffset", 0)
    stride = _int_field(view, "byteStride", VEC3_STRIDE) or VEC3_STRIDE
    count = _int_field(accessor, "count", 0)

    for vertex in range(count):
        offset = start + vertex * stride
        if offset < 0 or offset + VEC3_STRIDE > len(bin_data):
            break
        accumulator.add_point(_VEC3.unpack_from(bin_data, offset))


def compute_bounds(glb: bytes) -> GlbBounds:
    """Compute axis-aligned bounds of every POSITION accessor.

    Raises:
        MissingMeshesOrAccessorsError: ``meshes`` or ``accessors`` is absent
        MissingBinForBoundsError: Fallback needed but no BIN or bufferViews
        BoundsComputationError: No finite bounds could be derived
        GlbFormatError: The GLB itself is malformed
    """
    container, _, document = read_gltf_json(glb)
    meshes = document.get("meshes")
    accessors = document.get("accessors")
    if not isinstance(meshes, list) or not isinstance(accessors, list):
        raise MissingMeshesOrAccessorsError("Invalid GLB: missing meshes/accessors")

    indices = _position_accessor_indices(meshes)
    accumulator = _BoundsAccumulator()

    for index in indices:
        accessor = _lookup(accessors, index)
        if accessor is not None:
            accumulator.add_min_max(accessor.get("min"), accessor.get("max"))

    if not accumulator.used:
        bin_data = read_bin_chunk(container)
        buffer_views = document.get("bufferViews")
        if bin_data is None or not isinstance(buffer_views, list):
            raise MissingBinForBoundsError("Invalid GLB: missing BIN/bufferViews for bounds")
        logger.debug("Accessor min/max missing, scanning BIN positions", accessors=len(indices))
        for index in indices:
            accessor = _lookup(accessors, index)
            if accessor is not None:
                _fold_bin_positions(accumulator, accessor, buffer_views, bin_data)

    return accumulator.result()


def _accessor_count(accessors: List[Any], index: Any) -> int:
    accessor = _lookup(accessors, index)
    if accessor is None:
        return 0
    count = _finite(accessor.get("count"))
    return int(count) if count is not None and count > 0 else 0


def summarize_geometry(glb: bytes) -> GlbGeometryStats:
    """Count meshes, nodes, primitives and triangles in a GLB.

    Only TRIANGLES-mode primitives (mode absent or 4) contribute triangles:
    ``count // 3`` of the indices accessor, or of the POSITION accessor for
    non-indexed primitives.
    """
    try:
        _, _, document = read_gltf_json(glb)
    except GlbFormatError as e:
        logger.warning("Could not read GLB for geometry summary", error=str(e))
        return GlbGeometryStats()

    accessors = _list_field(document, "accessors")
    meshes = _list_field(document, "meshes")
    nodes = _list_field(document, "nodes")

    triangles = 0
    primitive_count = 0
    with_position = 0

    for mesh in meshes:
        for primitive in _primitives(mesh):
            primitive_count += 1
            position = _position_index(primitive)
            if position is not None:
                with_position += 1

            mode = primitive.get("mode") if isinstance(primitive, dict) else None
            if _is_number(mode) and mode != MODE_TRIANGLES:
                continue

            indices = primitive.get("indices") if isinstance(primitive, dict) else None
            if _is_index(indices):
                triangles += _accessor_count(accessors, indices) // 3
            elif position is not None:
                triangles += _accessor_count(accessors, position) // 3

    return GlbGeometryStats(
        triangles=triangles,
        mesh_count=len(meshes),
        node_count=len(nodes),
        primitive_count=primitive_count,
        nodes_with_mesh_count=sum(1 for node in nodes if isinstance(node, dict) and _is_index(node.get("mesh"))),
        primitives_with_position_count=with_position,
    )
