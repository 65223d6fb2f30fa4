"""Meshing of XCAF documents with BRepMesh."""

from __future__ import annotations

from typing import Any, Optional

import structlog

from .types import TriangulateOptions

logger = structlog.get_logger(__name__)

# Kernel defaults for unset triangulation fields
DEFAULT_TRIANGULATE_OPTIONS = TriangulateOptions(
    linear_deflection=1.0,
    angular_deflection=0.5,
    relative=False,
    parallel=True,
)


def resolve_triangulate_options(options: Optional[TriangulateOptions] = None) -> TriangulateOptions:
    """Fill unset meshing parameters from the defaults."""
    options = options or TriangulateOptions()
    defaults = DEFAULT_TRIANGULATE_OPTIONS

    def pick(value: Any, default: Any) -> Any:
        return default if value is None else value

    return TriangulateOptions(
        linear_deflection=pick(options.linear_deflection, defaults.linear_deflection),
        angular_deflection=pick(options.angular_deflection, defaults.angular_deflection),
        relative=pick(options.relative, defaults.relative),
        parallel=pick(options.parallel, defaults.parallel),
    )


def triangulate_document(doc: Any, options: Optional[TriangulateOptions] = None, debug: bool = False) -> None:
    """Mesh every free shape of the document in place.

    Args:
        doc: TDocStd_Document from the OCP binding
        options: Meshing parameters; unset fields use the defaults
        debug: Log the resolved parameters at info level
    """
    settings = resolve_triangulate_options(options)
    log = logger.info if debug else logger.debug
    log(
        "Triangulation settings",
        linear_deflection=settings.linear_deflection,
        angular_deflection=settings.angular_deflection,
        relative=settings.relative,
        parallel=settings.parallel,
    )

    from OCP.BRep import BRep_Builder
    from OCP.BRepMesh import BRepMesh_IncrementalMesh
    from OCP.TDF import TDF_LabelSequence
    from OCP.TopoDS import TopoDS_Compound
    from OCP.XCAFDoc import XCAFDoc_DocumentTool, XCAFDoc_ShapeTool

    shape_tool = XCAFDoc_DocumentTool.ShapeTool_s(doc.Main())
    builder = BRep_Builder()
    compound = TopoDS_Compound()
    builder.MakeCompound(compound)

    sequence = TDF_LabelSequence()
    shape_tool.GetFreeShapes(sequence)
    for index in range(1, sequence.Length() + 1):
        shape = XCAFDoc_ShapeTool.GetShape_s(sequence.Value(index))
        if shape is not None and not shape.IsNull():
            builder.Add(compound, shape)

    BRepMesh_IncrementalMesh(
        compound,
        float(settings.linear_deflection),
        bool(settings.relative),
        float(settings.angular_deflection),
        bool(settings.parallel),
    )
