"""Assembly tree, glTF-mapped node map and BOM summary.

Turns the kernel's raw node map and BOM into the structures published with
a conversion: a nested tree for display, a node map resolved against the
produced GLB, and a flat BOM with display names.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

import structlog

from glbcore.names import build_node_index, build_pretty_names
from kernel.errors import DuplicateGltfMappingError, MissingGltfMappingError
from kernel.types import BomExport, NodeMap

logger = structlog.get_logger(__name__)

UNKNOWN_NAME = "Unknown"


@dataclass
class AssemblyTreeNode:
    id: str
    name: str
    children: List["AssemblyTreeNode"] = field(default_factory=list)


@dataclass
class ConvertedNode:
    """Assembly node resolved to a glTF node (and mesh) index."""

    id: str
    name: str
    product_id: str
    gltf_node_index: int
    parent_id: Optional[str] = None
    children_ids: List[str] = field(default_factory=list)
    gltf_mesh_index: Optional[int] = None


@dataclass
class MappedNodeMap:
    roots: List[str] = field(default_factory=list)
    nodes: Dict[str, ConvertedNode] = field(default_factory=dict)


@dataclass
class BomSummaryItem:
    name: str
    quantity: int
    product_id: Optional[str] = None
    kind: Optional[str] = None


def _get(node: Any, key: str, default: Any = None) -> Any:
    if isinstance(node, dict):
        return node.get(key, default)
    return getattr(node, key, default)


def _child_ids(node: Any) -> List[str]:
    for key in ("children_ids", "childrenIds", "children"):
        value = _get(node, key)
        if isinstance(value, list):
            return value
    return []


def build_assembly_tree(node_map: Any) -> List[AssemblyTreeNode]:
    """Nest a flat node map into a forest following ``roots``.

    Accepts a ``NodeMap``, a ``MappedNodeMap`` or an equivalent dict; child
    ids are read from ``children`` or the legacy ``children_ids`` /
    ``childrenIds`` fields. Ids missing from the map are dropped.
    """
    nodes = _get(node_map, "nodes") or {}

    def visit(node_id: str) -> Optional[AssemblyTreeNode]:
        node = nodes.get(node_id)
        if node is None:
            return None
        children = [child for child in map(visit, _child_ids(node)) if child is not None]
        return AssemblyTreeNode(id=_get(node, "id"), name=_get(node, "name"), children=children)

    return [tree for tree in map(visit, _get(node_map, "roots") or []) if tree is not None]


def build_mapped_node_map(raw: NodeMap, glb: bytes) -> MappedNodeMap:
    """Resolve every raw node's label entry to a glTF node.

    Raises:
        MissingGltfMappingError: A node's label entry has no glTF node
        DuplicateGltfMappingError: Two nodes resolve to one glTF node
    """
    index_by_entry = build_node_index(glb)
    pretty_names = build_pretty_names(glb)

    used: Set[int] = set()
    nodes: Dict[str, ConvertedNode] = {}

    for node_id, node in raw.nodes.items():
        entry = node.label_entry if isinstance(node.label_entry, str) else None
        mapping = index_by_entry.get(entry) if entry is not None else None
        if mapping is None:
            logger.error("Node has no glTF mapping", node_id=node_id, label_entry=node.label_entry)
            raise MissingGltfMappingError(node_id)
        if mapping.gltf_node_index in used:
            logger.error("Duplicate glTF mapping", node_id=node_id, gltf_node_index=mapping.gltf_node_index)
            raise DuplicateGltfMappingError(mapping.gltf_node_index, node_id=node_id)
        used.add(mapping.gltf_node_index)

        nodes[node_id] = ConvertedNode(
            id=node.id,
            name=pretty_names.get(entry) or node.name,
            product_id=node.product_id,
            parent_id=node.parent_id,
            children_ids=list(node.children) if isinstance(node.children, list) else [],
            gltf_node_index=mapping.gltf_node_index,
            gltf_mesh_index=mapping.gltf_mesh_index,
        )

    logger.debug("Mapped nodes to glTF", nodes=len(nodes))
    return MappedNodeMap(roots=list(raw.roots), nodes=nodes)


def build_bom_summary(bom: BomExport, mapped: MappedNodeMap) -> List[BomSummaryItem]:
    """Flatten a BOM into display rows.

    Each row is named by the first mapped node name for its product, then
    the stored product name, then the product id, then ``"Unknown"``.
    """
    pretty_by_product: Dict[str, str] = {}
    for node in mapped.nodes.values():
        if node.product_id and node.name and node.product_id not in pretty_by_product:
            pretty_by_product[node.product_id] = node.name

    items = _get(bom, "items")
    if not isinstance(items, list):
        return []

    return [
        BomSummaryItem(
            name=(
                pretty_by_product.get(item.product_id)
                or item.product_name
                or item.product_id
                or UNKNOWN_NAME
            ),
            quantity=item.quantity or 0,
            product_id=item.product_id,
            kind=item.kind,
        )
        for item in items
    ]
