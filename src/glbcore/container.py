"""GLB binary container codec.

Parses a GLB buffer into its header version and chunk list, and rebuilds a
buffer from chunks. Layout per the glTF 2.0 binary container:

    header:  magic u32 | version u32 | length u32        (12 bytes, LE)
    chunk:   length u32 | type u32 | payload[length]     (8 + n bytes, LE)

The total length is recomputed on every build; a parsed buffer must match
its declared length exactly.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

import orjson

from kernel.errors import (
    InvalidJsonError,
    InvalidJsonRootError,
    InvalidMagicError,
    LengthMismatchError,
    MissingChunksError,
    MissingJsonChunkError,
    TruncatedChunkError,
    TruncatedFileError,
    TruncatedHeaderError,
)

GLB_MAGIC = 0x46546C67  # b"glTF"
GLB_HEADER_LENGTH = 12
GLB_CHUNK_HEADER_LENGTH = 8

CHUNK_TYPE_JSON = 0x4E4F534A  # b"JSON"
CHUNK_TYPE_BIN = 0x004E4942  # b"BIN\0"

JSON_PAD_BYTE = 0x20
BIN_PAD_BYTE = 0x00

_HEADER = struct.Struct("<III")
_CHUNK_HEADER = struct.Struct("<II")


@dataclass(frozen=True)
class GlbChunk:
    """A single GLB chunk; ``data`` excludes the 8-byte chunk header."""

    type: int
    data: bytes


@dataclass(frozen=True)
class GlbContainer:
    """Parsed GLB: header version plus chunks in file order."""

    version: int
    chunks: List[GlbChunk] = field(default_factory=list)


def parse_glb(data: bytes) -> GlbContainer:
    """Parse a GLB buffer.

    Args:
        data: Complete GLB file contents

    Returns:
        GlbContainer with the header version and every chunk

    Raises:
        InvalidMagicError: Buffer shorter than 4 bytes or magic is not glTF
        TruncatedHeaderError: Buffer shorter than header plus one chunk header
        TruncatedFileError: Declared length exceeds the buffer
        LengthMismatchError: Declared length is shorter than the buffer
        TruncatedChunkError: A chunk runs past the end of the buffer
        MissingChunksError: No chunks follow the header
    """
    data = bytes(data)
    size = len(data)

    if size < 4 or struct.unpack_from("<I", data, 0)[0] != GLB_MAGIC:
        raise InvalidMagicError("Invalid GLB: invalid magic")

    if size < GLB_HEADER_LENGTH + GLB_CHUNK_HEADER_LENGTH:
        raise TruncatedHeaderError("Invalid GLB: truncated header")

    _, version, declared_length = _HEADER.unpack_from(data, 0)
    if declared_length > size:
        raise TruncatedFileError(f"Invalid GLB: truncated file (header {declared_length} > buffer {size})")
    if declared_length < size:
        raise LengthMismatchError(f"Invalid GLB: length mismatch (header {declared_length} < buffer {size})")

    chunks: List[GlbChunk] = []
    offset = GLB_HEADER_LENGTH
    while offset < size:
        if offset + GLB_CHUNK_HEADER_LENGTH > size:
            raise TruncatedChunkError(f"Invalid GLB: truncated chunk header at offset {offset}")
        chunk_length, chunk_type = _CHUNK_HEADER.unpack_from(data, offset)
        start = offset + GLB_CHUNK_HEADER_LENGTH
        end = start + chunk_length
        if end > size:
            raise TruncatedChunkError(f"Invalid GLB: truncated chunk at offset {offset}")
        chunks.append(GlbChunk(type=chunk_type, data=data[start:end]))
        offset = end

    if not chunks:
        raise MissingChunksError("Invalid GLB: missing chunks")

    return GlbContainer(version=version, chunks=chunks)


def build_glb(version: int, chunks: List[GlbChunk]) -> bytes:
    """Serialize chunks into a GLB buffer.

    Chunk payloads are written as-is; callers pad them to 4 bytes with
    ``pad_chunk_data`` beforehand.
    """
    total_length = GLB_HEADER_LENGTH + sum(GLB_CHUNK_HEADER_LENGTH + len(chunk.data) for chunk in chunks)

    out = bytearray(_HEADER.pack(GLB_MAGIC, version, total_length))
    for chunk in chunks:
        out += _CHUNK_HEADER.pack(len(chunk.data), chunk.type)
        out += chunk.data
    return bytes(out)


def pad_chunk_data(data: bytes, pad_byte: int) -> bytes:
    """Right-pad ``data`` with ``pad_byte`` to the next 4-byte boundary."""
    remainder = len(data) % 4
    if remainder == 0:
        return bytes(data)
    return bytes(data) + bytes([pad_byte]) * (4 - remainder)


def find_chunk_index(container: GlbContainer, chunk_type: int) -> Optional[int]:
    """Index of the first chunk of ``chunk_type``, or None."""
    for index, chunk in enumerate(container.chunks):
        if chunk.type == chunk_type:
            return index
    return None


def decode_json_chunk(chunk: GlbChunk) -> Dict[str, Any]:
    """Decode a JSON chunk payload into its root object.

    Raises:
        InvalidJsonError: Payload is not UTF-8 JSON
        InvalidJsonRootError: JSON root is not an object
    """
    try:
        text = chunk.data.decode("utf-8").rstrip(" \t\r\n\x00")
        document = orjson.loads(text)
    except (UnicodeDecodeError, orjson.JSONDecodeError) as e:
        raise InvalidJsonError("Invalid GLB: JSON chunk is not valid JSON") from e

    if not isinstance(document, dict):
        raise InvalidJsonRootError("Invalid GLB: JSON chunk root is not an object")
    return document


def read_gltf_json(data: bytes) -> Tuple[GlbContainer, int, Dict[str, Any]]:
    """Parse a GLB and decode its first JSON chunk.

    Returns:
        Tuple of (container, json_chunk_index, gltf_document)

    Raises:
        GlbFormatError: Any container or JSON chunk failure
    """
    container = parse_glb(data)
    json_index = find_chunk_index(container, CHUNK_TYPE_JSON)
    if json_index is None:
        raise MissingJsonChunkError("Invalid GLB: missing JSON chunk")
    return container, json_index, decode_json_chunk(container.chunks[json_index])


def read_bin_chunk(container: GlbContainer) -> Optional[bytes]:
    """Payload of the first BIN chunk, or None when absent."""
    index = find_chunk_index(container, CHUNK_TYPE_BIN)
    return None if index is None else container.chunks[index].data
