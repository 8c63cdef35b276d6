"""
マインドマップ

セッション中の話題を木構造で整理するマインドマップの編集モデル。
"""

from memento.mindmap.history import HISTORY_LIMIT, MindMapHistory, structurally_equal
from memento.mindmap.layout import NODE_HEIGHT, NODE_WIDTH, apply_layout, hidden_node_ids
from memento.mindmap.models import (
    ROOT_NODE_ID,
    MindMap,
    MindMapEdge,
    MindMapNode,
    Position,
    initial_mind_map,
)
from memento.mindmap.tree import MindMapEditor

__all__ = [
    "HISTORY_LIMIT",
    "MindMapHistory",
    "structurally_equal",
    "NODE_HEIGHT",
    "NODE_WIDTH",
    "apply_layout",
    "hidden_node_ids",
    "ROOT_NODE_ID",
    "MindMap",
    "MindMapEdge",
    "MindMapNode",
    "Position",
    "initial_mind_map",
    "MindMapEditor",
]
