"""GLB, glTF and OBJ export through the OCCT CAF writers.

Writers produce files, so every export runs inside a temporary directory
and returns the written bytes.
"""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

from .errors import ExportError
from .types import ConvertBufferResult, NameFormat, OutputFormat, WriteOptions
from .units import is_valid_scale

logger = structlog.get_logger(__name__)

DEFAULT_NAME_FORMAT: NameFormat = "productOrInstance"

# Public name format keys -> RWMesh_NameFormat enum member names
NAME_FORMAT_KEYS: Dict[str, str] = {
    "empty": "RWMesh_NameFormat_Empty",
    "product": "RWMesh_NameFormat_Product",
    "instance": "RWMesh_NameFormat_Instance",
    "instanceOrProduct": "RWMesh_NameFormat_InstanceOrProduct",
    "productOrInstance": "RWMesh_NameFormat_ProductOrInstance",
    "productAndInstance": "RWMesh_NameFormat_ProductAndInstance",
    "productAndInstanceAndOcaf": "RWMesh_NameFormat_ProductAndInstanceAndOcaf",
}


def resolve_name_format_key(name_format: Optional[str] = None) -> str:
    """Map a name format to its RWMesh enum key, falling back to the default."""
    return NAME_FORMAT_KEYS.get(name_format or DEFAULT_NAME_FORMAT, NAME_FORMAT_KEYS[DEFAULT_NAME_FORMAT])


def _metadata_map(metadata: Optional[Dict[str, str]]) -> Any:
    from OCP.TCollection import TCollection_AsciiString
    from OCP.TColStd import TColStd_IndexedDataMapOfStringString

    file_info = TColStd_IndexedDataMapOfStringString()
    for key, value in (metadata or {}).items():
        file_info.Add(TCollection_AsciiString(str(key)), TCollection_AsciiString(str(value)))
    return file_info


def apply_name_format(writer: Any, name_format: Optional[str]) -> None:
    """Set node and mesh naming on a glTF writer when it supports it."""
    if not hasattr(writer, "SetNodeNameFormat"):
        return
    from OCP.RWMesh import RWMesh_NameFormat

    fmt = getattr(RWMesh_NameFormat, resolve_name_format_key(name_format))
    writer.SetNodeNameFormat(fmt)
    if hasattr(writer, "SetMeshNameFormat"):
        writer.SetMeshNameFormat(fmt)


def apply_length_unit_conversion(writer: Any, scale_to_meters: Optional[float]) -> None:
    """Configure the writer to emit meters from ``scale_to_meters`` input units."""
    if not is_valid_scale(scale_to_meters):
        return
    try:
        converter = writer.ChangeCoordinateSystemConverter()
        converter.SetInputLengthUnit(float(scale_to_meters))
        converter.SetOutputLengthUnit(1.0)
        if hasattr(writer, "SetCoordinateSystemConverter"):
            writer.SetCoordinateSystemConverter(converter)
    except (AttributeError, TypeError, RuntimeError) as e:
        logger.warning("Writer does not support length unit conversion", error=str(e))


def _enable_merge_faces(writer: Any) -> None:
    if not hasattr(writer, "SetMergeFaces"):
        return
    try:
        writer.SetMergeFaces(True)
    except (TypeError, RuntimeError) as e:
        logger.debug("SetMergeFaces not supported", error=str(e))


def _perform(writer: Any, doc: Any, options: WriteOptions) -> None:
    from OCP.Message import Message_ProgressRange

    writer.Perform(doc, _metadata_map(options.metadata), Message_ProgressRange())


def _read_if_exists(path: Path) -> Optional[bytes]:
    return path.read_bytes() if path.is_file() else None


def write_glb(doc: Any, workdir: Path, options: WriteOptions) -> Optional[bytes]:
    from OCP.RWGltf import RWGltf_CafWriter
    from OCP.TCollection import TCollection_AsciiString

    path = workdir / "output.glb"
    writer = RWGltf_CafWriter(TCollection_AsciiString(str(path)), True)
    apply_name_format(writer, options.name_format)
    apply_length_unit_conversion(writer, options.unit_scale_to_meters)
    _enable_merge_faces(writer)
    _perform(writer, doc, options)
    return _read_if_exists(path)


def write_gltf(doc: Any, workdir: Path, options: WriteOptions) -> tuple[Optional[bytes], Optional[bytes]]:
    from OCP.RWGltf import RWGltf_CafWriter
    from OCP.TCollection import TCollection_AsciiString

    gltf_path = workdir / "output.gltf"
    bin_path = gltf_path.with_suffix(".bin")
    writer = RWGltf_CafWriter(TCollection_AsciiString(str(gltf_path)), False)
    apply_name_format(writer, options.name_format)
    apply_length_unit_conversion(writer, options.unit_scale_to_meters)
    _enable_merge_faces(writer)
    _perform(writer, doc, options)
    return _read_if_exists(gltf_path), _read_if_exists(bin_path)


def write_obj(doc: Any, workdir: Path, options: WriteOptions) -> Optional[bytes]:
    from OCP.RWObj import RWObj_CafWriter
    from OCP.TCollection import TCollection_AsciiString

    path = workdir / "output.obj"
    writer = RWObj_CafWriter(TCollection_AsciiString(str(path)))
    _perform(writer, doc, options)
    return _read_if_exists(path)


def write_document_to_buffer(
    doc: Any,
    fmt: OutputFormat,
    options: Optional[WriteOptions] = None,
) -> ConvertBufferResult:
    """Write a document to the requested format and return the bytes.

    Args:
        doc: TDocStd_Document from the OCP binding
        fmt: Output format ("glb", "gltf" or "obj")
        options: Writer options

    Returns:
        ConvertBufferResult with the fields for ``fmt`` populated

    Raises:
        ExportError: If the writer produced no output
    """
    options = options or WriteOptions()
    logger.info("Writing document", format=fmt, name_format=options.name_format)

    with tempfile.TemporaryDirectory(prefix="cadbridge-") as tmpdir:
        workdir = Path(tmpdir)

        if fmt == "glb":
            data = write_glb(doc, workdir, options)
            if not data:
                raise ExportError("Failed to generate GLB output.")
            result = ConvertBufferResult(output_format="glb", glb=data)

        elif fmt == "gltf":
            gltf_data, bin_data = write_gltf(doc, workdir, options)
            if not gltf_data or not bin_data:
                raise ExportError("Failed to generate GLTF output.")
            result = ConvertBufferResult(output_format="gltf", gltf=gltf_data, gltf_bin=bin_data)

        elif fmt == "obj":
            data = write_obj(doc, workdir, options)
            if not data:
                raise ExportError("Failed to generate OBJ output.")
            result = ConvertBufferResult(output_format="obj", obj=data)

        else:
            raise ExportError(f"Unsupported export format: {fmt}")

    logger.info("Document written", format=fmt)
    return result
