"""Exception hierarchy shared by the kernel adapter, GLB tooling and conversion.

Every error carries a stable ``code`` so callers can branch on the cause
without matching message text.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class CadBridgeError(Exception):
    """Base class for all CadBridge errors."""

    code = "cadbridge/error"


class ConversionError(CadBridgeError):
    """A conversion step could not produce usable output."""

    code = "conversion/failed"


class ValidationError(CadBridgeError):
    """Caller-supplied input violates a precondition."""

    code = "validation/failed"


class OCCTNotAvailableError(CadBridgeError):
    """Raised when no Open CASCADE binding is available."""

    code = "kernel/occt-unavailable"


class DocumentReadError(ConversionError):
    """Raised when the kernel cannot read a STEP/IGES payload."""

    code = "kernel/read-failed"


class ExportError(ConversionError):
    """Raised when the kernel writer produces no output."""

    code = "kernel/write-failed"


class UnsupportedContentError(ConversionError):
    """The document holds no solids or assemblies that can be converted."""

    code = "UNSUPPORTED_STEP_CONTENT"

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.detail = detail or {}


# GLB container errors


class GlbFormatError(ConversionError):
    """Base class for malformed GLB input."""

    code = "glb/invalid"


class InvalidMagicError(GlbFormatError):
    code = "glb/invalid-magic"


class TruncatedHeaderError(GlbFormatError):
    code = "glb/truncated-header"


class TruncatedFileError(GlbFormatError):
    code = "glb/truncated-file"


class LengthMismatchError(GlbFormatError):
    code = "glb/length-mismatch"


class TruncatedChunkError(GlbFormatError):
    code = "glb/truncated-chunk"


class MissingChunksError(GlbFormatError):
    code = "glb/missing-chunks"


class MissingJsonChunkError(GlbFormatError):
    code = "glb/missing-json-chunk"


class InvalidJsonError(GlbFormatError):
    code = "glb/invalid-json"


class InvalidJsonRootError(GlbFormatError):
    code = "glb/invalid-json-root"


class NotSerializableError(ValidationError):
    """Raised when an extras payload cannot be encoded as JSON."""

    code = "glb/not-serializable"


# Bounds errors


class BoundsError(ConversionError):
    code = "bounds/failed"


class MissingMeshesOrAccessorsError(BoundsError):
    code = "bounds/missing-meshes-or-accessors"


class MissingBinForBoundsError(BoundsError):
    code = "bounds/missing-bin"


class BoundsComputationError(BoundsError):
    code = "bounds/computation-failed"


# Node mapping errors


class MissingGltfMappingError(ConversionError):
    """A CAD node has no glTF node carrying its label entry."""

    code = "mapping/missing-gltf-node"

    def __init__(self, node_id: str):
        super().__init__(f"Missing glTF mapping for node {node_id}")
        self.node_id = node_id


class DuplicateGltfMappingError(ConversionError):
    """Two CAD nodes resolved to the same glTF node index."""

    code = "mapping/duplicate-gltf-node"

    def __init__(self, gltf_node_index: int, node_id: Optional[str] = None):
        super().__init__(f"Duplicate glTF node mapping for index {gltf_node_index}")
        self.gltf_node_index = gltf_node_index
        self.node_id = node_id
