"""CAD-to-GLB conversion pipeline.

``convert_document_to_glb_with_retries`` drives kernel triangulation and GLB
writing under the triangulation retry policy. ``convert_cad_buffer_to_glb_with_metadata``
runs the whole pipeline from raw CAD bytes: read, mesh with retries, map
nodes to the GLB, aggregate the BOM and optionally embed the resulting
metadata in ``asset.extras``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from typing import Any, Dict, List, Optional

import structlog

from glbcore.geometry import GlbBounds, GlbGeometryStats, compute_bounds, summarize_geometry
from glbcore.metadata import inject_asset_extras
from kernel.errors import ExportError, UnsupportedContentError
from kernel.interface import CadKernel, DocumentHandle
from kernel.types import (
    InputFormat,
    LengthUnitInfo,
    NameFormat,
    ReadOptions,
    TriangulateOptions,
    WriteOptions,
)
from kernel.units import unit_name_from_scale

from .assembly import (
    AssemblyTreeNode,
    BomSummaryItem,
    MappedNodeMap,
    build_assembly_tree,
    build_bom_summary,
    build_mapped_node_map,
)
from .policy import (
    DEFAULT_ATTEMPTS,
    TRIANGLE_EXPLOSION_THRESHOLDS,
    TriangleExplosionThresholds,
    TriangulationBase,
    is_triangle_explosion,
    schedule_for_attempt,
)

logger = structlog.get_logger(__name__)

DEFAULT_LINEAR_DEFLECTION = 1.0
DEFAULT_ANGULAR_DEFLECTION = 0.5

# Names carry the OCAF entry so nodes can be mapped back to the assembly
CONVERSION_NAME_FORMAT: NameFormat = "productAndInstanceAndOcaf"

OUTPUT_LENGTH_UNIT = "m"

WARNING_RELATIVE_FORCED_FALSE = "mesh/relative-forced-false"
WARNING_EXPLOSION_RETRY = "mesh/triangle-explosion-retry"
WARNING_EXPLOSION_UNRESOLVED = "mesh/triangle-explosion-unresolved"

UNSUPPORTED_CONTENT_MESSAGE = "This STEP file contains no supported solids/assemblies."


@dataclass(frozen=True)
class ConversionWarning:
    """Non-fatal condition reported alongside a conversion result."""

    code: str
    message: str
    detail: Optional[Dict[str, Any]] = None


@dataclass
class GlbConversionOptions:
    triangulate: Optional[TriangulateOptions] = None
    name_format: Optional[NameFormat] = None
    attempts: Optional[int] = None
    unit_scale_to_meters: Optional[float] = None
    thresholds: Optional[TriangleExplosionThresholds] = None


@dataclass
class GlbConversionResult:
    glb: bytes
    mesh_stats: GlbGeometryStats
    triangulate_used: TriangulateOptions
    conversion_warnings: List[ConversionWarning] = field(default_factory=list)


@dataclass
class ConversionUnits:
    input_length_unit: str
    input_unit_source: str
    scale_to_meters: float
    output_length_unit: str = OUTPUT_LENGTH_UNIT


@dataclass
class ConversionMetadata:
    """Everything published about a converted document."""

    mesh_stats: GlbGeometryStats
    conversion_warnings: List[ConversionWarning]
    assembly_tree: List[AssemblyTreeNode]
    node_map: MappedNodeMap
    bom: List[BomSummaryItem]
    units: ConversionUnits
    bounds_meters: GlbBounds
    schema_version: Optional[str] = None

    def to_json_dict(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys, as embedded in ``asset.extras``.

        Node map entries stay keyed by node id; unset optional fields are
        omitted.
        """
        data: Dict[str, Any] = {}
        if self.schema_version:
            data["schemaVersion"] = self.schema_version
        data["meshStats"] = _json_value(self.mesh_stats)
        data["conversionWarnings"] = [_warning_json(warning) for warning in self.conversion_warnings]
        data["assemblyTree"] = _json_value(self.assembly_tree)
        data["nodeMap"] = {
            "roots": list(self.node_map.roots),
            "nodes": {node_id: _json_value(node) for node_id, node in self.node_map.nodes.items()},
        }
        data["bom"] = _json_value(self.bom)
        data["units"] = _json_value(self.units)
        data["boundsMeters"] = {
            "min": list(self.bounds_meters.min),
            "max": list(self.bounds_meters.max),
        }
        return data


@dataclass
class ConvertCadBufferOptions:
    input_format: InputFormat
    triangulate: Optional[TriangulateOptions] = None
    name_format: Optional[NameFormat] = None
    read_options: Optional[ReadOptions] = None
    attempts: Optional[int] = None
    unit_scale_to_meters: Optional[float] = None
    schema_version: Optional[str] = None
    embed_metadata_key: Optional[str] = None
    validate_node_map: bool = False
    validate_mesh: bool = False
    thresholds: Optional[TriangleExplosionThresholds] = None


@dataclass
class ConvertCadBufferResult:
    glb: bytes
    mesh_stats: GlbGeometryStats
    conversion_warnings: List[ConversionWarning]
    metadata: ConversionMetadata
    patched_glb: Optional[bytes] = None


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _json_value(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {
            _camel(f.name): _json_value(getattr(value, f.name))
            for f in fields(value)
            if getattr(value, f.name) is not None
        }
    if isinstance(value, dict):
        return {key: _json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_value(item) for item in value]
    return value


def _warning_json(warning: ConversionWarning) -> Dict[str, Any]:
    data: Dict[str, Any] = {"code": warning.code, "message": warning.message}
    if warning.detail is not None:
        data["detail"] = {_camel(key): _json_value(item) for key, item in warning.detail.items()}
    return data


def _is_finite_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def convert_document_to_glb_with_retries(
    kernel: CadKernel,
    doc: DocumentHandle,
    options: Optional[GlbConversionOptions] = None,
) -> GlbConversionResult:
    """Triangulate and write ``doc`` as GLB, coarsening on triangle explosion.

    Each attempt meshes from the caller's original deflections through
    ``schedule_for_attempt``. An explosion on an intermediate attempt adds a
    retry warning; an explosion on the final attempt adds an unresolved
    warning and the final GLB is still returned.

    Args:
        kernel: CAD kernel performing triangulation and export
        doc: Document handle returned by ``kernel.read_document``
        options: Meshing, naming and retry options

    Returns:
        Result holding the final GLB, its stats, the triangulation used and
        the warnings in emission order

    Raises:
        ExportError: If the kernel does not produce GLB output
    """
    options = options or GlbConversionOptions()
    original = options.triangulate or TriangulateOptions()
    warnings: List[ConversionWarning] = []

    if original.relative is True:
        warnings.append(
            ConversionWarning(
                code=WARNING_RELATIVE_FORCED_FALSE,
                message="Relative deflection was disabled to ensure absolute tessellation.",
                detail={
                    "triangulate_original": original,
                    "triangulate_forced": replace(original, relative=False),
                },
            )
        )

    base = TriangulationBase(
        linear_deflection0=(
            original.linear_deflection
            if original.linear_deflection is not None
            else DEFAULT_LINEAR_DEFLECTION
        ),
        angular_deflection0=(
            original.angular_deflection
            if original.angular_deflection is not None
            else DEFAULT_ANGULAR_DEFLECTION
        ),
        parallel=original.parallel,
    )
    attempts = max(1, options.attempts if options.attempts is not None else DEFAULT_ATTEMPTS)
    thresholds = options.thresholds or TRIANGLE_EXPLOSION_THRESHOLDS
    write_options = WriteOptions(
        name_format=options.name_format or CONVERSION_NAME_FORMAT,
        unit_scale_to_meters=options.unit_scale_to_meters,
    )

    glb: Optional[bytes] = None
    stats: Optional[GlbGeometryStats] = None
    used: Optional[TriangulateOptions] = None

    for attempt in range(attempts):
        schedule = schedule_for_attempt(base, attempt)
        used = TriangulateOptions(
            linear_deflection=schedule.linear_deflection,
            angular_deflection=schedule.angular_deflection,
            relative=schedule.relative,
            parallel=schedule.parallel,
        )

        kernel.triangulate(doc, used)
        result = kernel.write_buffer(doc, "glb", write_options)
        if result.output_format != "glb" or result.glb is None:
            raise ExportError("Failed to generate GLB output.")

        glb = result.glb
        stats = summarize_geometry(glb)
        logger.info(
            "Conversion attempt",
            attempt=attempt,
            linear_deflection=used.linear_deflection,
            angular_deflection=used.angular_deflection,
            triangles=stats.triangles,
            primitives=stats.primitive_count,
        )

        if not is_triangle_explosion(stats, thresholds):
            break

        detail = {
            "attempt": attempt,
            "thresholds": thresholds,
            "mesh_stats": stats,
            "triangulate_used": used,
        }

        if attempt < attempts - 1:
            logger.warning("Triangle explosion, retrying with coarser meshing", attempt=attempt)
            warnings.append(
                ConversionWarning(
                    code=WARNING_EXPLOSION_RETRY,
                    message=(
                        f"Triangle explosion detected on attempt {attempt}; "
                        "meshing was coarsened and retried."
                    ),
                    detail=detail,
                )
            )
            continue

        logger.warning("Triangle explosion unresolved after final attempt", attempt=attempt)
        warnings.append(
            ConversionWarning(
                code=WARNING_EXPLOSION_UNRESOLVED,
                message="Triangle explosion thresholds were exceeded after the final attempt.",
                detail=detail,
            )
        )

    if glb is None or stats is None or used is None:
        raise ExportError("Failed to generate GLB output.")

    return GlbConversionResult(glb=glb, mesh_stats=stats, triangulate_used=used, conversion_warnings=warnings)


def convert_cad_buffer_to_glb_with_metadata(
    kernel: CadKernel,
    data: bytes,
    options: ConvertCadBufferOptions,
) -> ConvertCadBufferResult:
    """Convert raw STEP/IGES bytes to GLB plus assembly metadata.

    Args:
        kernel: CAD kernel used for every CAD operation
        data: Raw CAD file bytes
        options: Conversion options; ``input_format`` is required

    Returns:
        GLB, stats, warnings and metadata; ``patched_glb`` is set when
        ``embed_metadata_key`` is given

    Raises:
        UnsupportedContentError: Validation found no nodes or no meshes
        MissingGltfMappingError: A node has no counterpart in the GLB
        DuplicateGltfMappingError: Two nodes map to one glTF node
        BoundsError: Bounds cannot be computed from the GLB
    """
    read_options = options.read_options or ReadOptions()
    doc = kernel.read_document(data, options.input_format, read_options)

    raw_node_map = kernel.build_raw_node_map(doc)
    if options.validate_node_map:
        root_count = len(raw_node_map.roots) if isinstance(raw_node_map.roots, list) else 0
        node_count = len(raw_node_map.nodes) if raw_node_map.nodes else 0
        if root_count == 0 or node_count == 0:
            logger.error("No supported content in node map", root_count=root_count, node_count=node_count)
            raise UnsupportedContentError(
                UNSUPPORTED_CONTENT_MESSAGE,
                detail={"root_count": root_count, "node_count": node_count},
            )

    if _is_finite_number(options.unit_scale_to_meters):
        unit_info = LengthUnitInfo(scale_to_meters=float(options.unit_scale_to_meters), source="override")
    else:
        unit_info = kernel.read_length_unit(doc)
    logger.debug("Input length unit", scale_to_meters=unit_info.scale_to_meters, source=unit_info.source)

    conversion = convert_document_to_glb_with_retries(
        kernel,
        doc,
        GlbConversionOptions(
            triangulate=options.triangulate,
            name_format=options.name_format,
            attempts=options.attempts,
            unit_scale_to_meters=unit_info.scale_to_meters,
            thresholds=options.thresholds,
        ),
    )
    glb = conversion.glb
    stats = conversion.mesh_stats

    if options.validate_mesh and (stats.mesh_count == 0 or stats.primitives_with_position_count == 0):
        logger.error("No supported content in mesh", mesh_count=stats.mesh_count)
        raise UnsupportedContentError(UNSUPPORTED_CONTENT_MESSAGE, detail=asdict(stats))

    mapped = build_mapped_node_map(raw_node_map, glb)
    raw_bom = kernel.build_raw_bom(doc)
    bounds = compute_bounds(glb)

    metadata = ConversionMetadata(
        schema_version=options.schema_version or None,
        mesh_stats=stats,
        conversion_warnings=conversion.conversion_warnings,
        assembly_tree=build_assembly_tree(mapped),
        node_map=mapped,
        bom=build_bom_summary(raw_bom, mapped),
        units=ConversionUnits(
            input_length_unit=unit_name_from_scale(unit_info.scale_to_meters),
            input_unit_source=unit_info.source,
            scale_to_meters=unit_info.scale_to_meters,
        ),
        bounds_meters=bounds,
    )

    patched_glb = None
    if options.embed_metadata_key:
        patched_glb = inject_asset_extras(glb, {options.embed_metadata_key: metadata.to_json_dict()})

    logger.info(
        "Conversion complete",
        nodes=len(mapped.nodes),
        bom_items=len(metadata.bom),
        triangles=stats.triangles,
        warnings=len(conversion.conversion_warnings),
        embedded=patched_glb is not None,
    )

    return ConvertCadBufferResult(
        glb=glb,
        patched_glb=patched_glb,
        mesh_stats=stats,
        conversion_warnings=conversion.conversion_warnings,
        metadata=metadata,
    )
