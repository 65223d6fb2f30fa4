"""CadBridge: CAD to GLB conversion with assembly metadata.

Drives a CAD kernel through triangulation retries, maps the assembly onto
the produced GLB and publishes node maps, BOM summaries, units and bounds.
"""

from .assembly import (
    AssemblyTreeNode,
    BomSummaryItem,
    ConvertedNode,
    MappedNodeMap,
    build_assembly_tree,
    build_bom_summary,
    build_mapped_node_map,
)
from .conversion import (
    ConversionMetadata,
    ConversionWarning,
    ConvertCadBufferOptions,
    ConvertCadBufferResult,
    GlbConversionOptions,
    GlbConversionResult,
    convert_cad_buffer_to_glb_with_metadata,
    convert_document_to_glb_with_retries,
)
from .converter import CadConverter, create_converter
from .logging_setup import configure_logging, configure_logging_from_settings
from .policy import (
    TRIANGLE_EXPLOSION_THRESHOLDS,
    TriangleExplosionThresholds,
    TriangulationAttempt,
    TriangulationBase,
    is_triangle_explosion,
    schedule_for_attempt,
)
from .settings import Settings, load_settings

__version__ = "0.1.0"
__all__ = [
    "AssemblyTreeNode", "BomSummaryItem", "ConvertedNode", "MappedNodeMap",
    "build_assembly_tree", "build_bom_summary", "build_mapped_node_map",
    "ConversionMetadata", "ConversionWarning", "ConvertCadBufferOptions",
    "ConvertCadBufferResult", "GlbConversionOptions", "GlbConversionResult",
    "convert_cad_buffer_to_glb_with_metadata", "convert_document_to_glb_with_retries",
    "CadConverter", "create_converter", "configure_logging", "configure_logging_from_settings",
    "TRIANGLE_EXPLOSION_THRESHOLDS", "TriangleExplosionThresholds",
    "TriangulationAttempt", "TriangulationBase", "is_triangle_explosion", "schedule_for_attempt",
    "Settings", "load_settings",
]
