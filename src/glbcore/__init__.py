"""GLB container tooling.

Byte-exact GLB parsing and rebuilding, ``asset.extras`` patching, geometry
statistics and glTF node name mapping, all computed from GLB bytes.
"""

from .container import (
    CHUNK_TYPE_BIN,
    CHUNK_TYPE_JSON,
    GlbChunk,
    GlbContainer,
    build_glb,
    pad_chunk_data,
    parse_glb,
    read_gltf_json,
)
from .geometry import GlbBounds, GlbGeometryStats, compute_bounds, summarize_geometry
from .metadata import inject_asset_extras
from .names import (
    GltfNodeIndex,
    build_node_index,
    build_pretty_names,
    clean_display_name,
    extract_identifier,
)

__version__ = "0.1.0"
__all__ = [
    "CHUNK_TYPE_BIN", "CHUNK_TYPE_JSON", "GlbChunk", "GlbContainer",
    "build_glb", "pad_chunk_data", "parse_glb", "read_gltf_json",
    "GlbBounds", "GlbGeometryStats", "compute_bounds", "summarize_geometry",
    "inject_asset_extras",
    "GltfNodeIndex", "build_node_index", "build_pretty_names",
    "clean_display_name", "extract_identifier",
]
