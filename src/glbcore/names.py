"""Mapping between CAD label entries and glTF nodes.

The OCCT glTF writer embeds the XCAF label entry (``0:1:1:3``) in node
names when the ``productAndInstanceAndOcaf`` name format is used, e.g.
``"Bolt [0:1:1:3] [NAUO12]"``. These helpers recover the entry, strip the
bracketed noise for display, and index glTF nodes by entry.

When several nodes carry the same entry the first one wins. Downstream
node maps depend on that ordering, so keep it stable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import structlog

from kernel.errors import GlbFormatError

from .container import read_gltf_json

logger = structlog.get_logger(__name__)

IDENTIFIER_PATTERN = re.compile(r"\b\d+(?::\d+)+\b", re.ASCII)
INSTANCE_TAG_PATTERN = re.compile(r"NAUO\d+", re.IGNORECASE | re.ASCII)
_BRACKET_SPLIT = re.compile(r"\s*\[")
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True)
class GltfNodeIndex:
    """glTF node (and optional mesh) carrying a label entry."""

    gltf_node_index: int
    gltf_mesh_index: Optional[int] = None


def extract_identifier(name: str) -> Optional[str]:
    """Return the last label entry embedded in ``name``, if any.

    Examples:
        >>> extract_identifier("Gear Box [0:1]")
        '0:1'
        >>> extract_identifier("No entry") is None
        True
    """
    matches = IDENTIFIER_PATTERN.findall(name)
    return matches[-1] if matches else None


def clean_display_name(name: str) -> str:
    """Drop bracketed label entries and instance tags from a node name.

    Examples:
        >>> clean_display_name("Bolt [0:1:2] [NAUO123]")
        'Bolt'
        >>> clean_display_name("Part [0:1:3] [Custom]")
        'Part [Custom]'
    """
    trimmed = name.strip()
    if not trimmed:
        return ""

    parts = _BRACKET_SPLIT.split(trimmed)
    if len(parts) == 1:
        return trimmed

    kept = [parts[0].strip()]
    for segment in parts[1:]:
        close = segment.find("]")
        if close == -1:
            continue
        inside = segment[:close].strip()
        if not inside or IDENTIFIER_PATTERN.search(inside) or INSTANCE_TAG_PATTERN.search(inside):
            continue
        kept.append(f"[{inside}]")

    result = _WHITESPACE.sub(" ", " ".join(part for part in kept if part)).strip()
    return result or trimmed


def _gltf_nodes(glb: bytes) -> List[Any]:
    try:
        _, _, document = read_gltf_json(glb)
    except GlbFormatError as e:
        logger.warning("Could not read glTF nodes", error=str(e))
        return []
    nodes = document.get("nodes")
    return nodes if isinstance(nodes, list) else []


def _named_nodes(glb: bytes):
    for index, node in enumerate(_gltf_nodes(glb)):
        if not isinstance(node, dict):
            continue
        name = node.get("name")
        if not isinstance(name, str) or not name:
            continue
        yield index, node, name


def build_node_index(glb: bytes) -> Dict[str, GltfNodeIndex]:
    """Index glTF nodes by the label entry found in their names."""
    index_by_entry: Dict[str, GltfNodeIndex] = {}
    for index, node, name in _named_nodes(glb):
        entry = extract_identifier(name)
        if not entry or entry in index_by_entry:
            continue
        mesh = node.get("mesh")
        index_by_entry[entry] = GltfNodeIndex(
            gltf_node_index=index,
            gltf_mesh_index=mesh if isinstance(mesh, int) and not isinstance(mesh, bool) else None,
        )
    return index_by_entry


def build_pretty_names(glb: bytes) -> Dict[str, str]:
    """Map label entries to cleaned display names.

    Entries whose cleaned name is just the entry itself are left out.
    """
    names: Dict[str, str] = {}
    for _, _, name in _named_nodes(glb):
        entry = extract_identifier(name)
        if not entry or entry in names:
            continue
        cleaned = clean_display_name(name)
        if cleaned and cleaned != entry:
            names[entry] = cleaned
    return names
