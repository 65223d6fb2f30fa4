"""Embedding of JSON metadata into a GLB's ``asset.extras``."""

from __future__ import annotations

from typing import Any, Dict

import orjson
import structlog

from kernel.errors import NotSerializableError, ValidationError

from .container import (
    CHUNK_TYPE_JSON,
    JSON_PAD_BYTE,
    GlbChunk,
    build_glb,
    pad_chunk_data,
    read_gltf_json,
)

logger = structlog.get_logger(__name__)


def inject_asset_extras(glb: bytes, extras: Dict[str, Any]) -> bytes:
    """Shallow-merge ``extras`` into ``asset.extras`` of a GLB.

    Keys from ``extras`` win on conflict. A missing or non-object ``asset``
    or ``asset.extras`` is replaced by an empty object first. Every chunk
    other than the JSON chunk is carried over byte for byte.

    Args:
        glb: GLB file contents; never modified
        extras: JSON-serializable mapping to merge

    Returns:
        New GLB buffer

    Raises:
        ValidationError: ``extras`` is not a dict
        NotSerializableError: The merged document cannot be encoded as JSON
        GlbFormatError: The GLB or its JSON chunk is malformed
    """
    if not isinstance(extras, dict):
        raise ValidationError("Invalid extras payload: expected an object")

    container, json_index, document = read_gltf_json(glb)

    asset = document.get("asset")
    if not isinstance(asset, dict):
        asset = {}
    existing = asset.get("extras")
    if not isinstance(existing, dict):
        existing = {}

    asset["extras"] = {**existing, **extras}
    document["asset"] = asset

    try:
        payload = orjson.dumps(document)
    except (TypeError, ValueError) as e:
        raise NotSerializableError("Invalid extras payload: not JSON-serializable") from e

    chunks = list(container.chunks)
    chunks[json_index] = GlbChunk(type=CHUNK_TYPE_JSON, data=pad_chunk_data(payload, JSON_PAD_BYTE))

    logger.debug("Injected asset extras", keys=sorted(extras), json_bytes=len(payload))
    return build_glb(container.version, chunks)
