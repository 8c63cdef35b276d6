"""
マインドマップの Undo / Redo 履歴

状態のスナップショットを保持する。ノードの移動や選択だけの変更は
構造が変わらないため履歴に積まない。
"""

from typing import List, Optional

from memento.mindmap.models import MindMap

HISTORY_LIMIT = 100


def structurally_equal(past: MindMap, current: MindMap) -> bool:
    """
    構造が同じかどうか

    エッジは id / source / target、ノードは id / type / parentId / label / expanded を比較する。
    座標・選択状態・表示状態は比較しない。
    """
    if len(past.edges) != len(current.edges):
        return False
    for a, b in zip(past.edges, current.edges):
        if (a.id, a.source, a.target) != (b.id, b.source, b.target):
            return False

    if len(past.nodes) != len(current.nodes):
        return False
    for a, b in zip(past.nodes, current.nodes):
        if (a.id, a.type, a.parent_id, a.label, a.expanded) != (b.id, b.type, b.parent_id, b.label, b.expanded):
            return False
    return True


class MindMapHistory:
    """スナップショット方式の履歴"""

    def __init__(self, present: MindMap, limit: int = HISTORY_LIMIT):
        self.present = present
        self.limit = limit
        self._past: List[MindMap] = []
        self._future: List[MindMap] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def set(self, state: MindMap) -> bool:
        """
        新しい状態を反映

        Returns:
            履歴に記録した場合 True
        """
        previous = self.present
        self.present = state
        if structurally_equal(previous, state):
            return False

        self._past.append(previous)
        if len(self._past) > self.limit:
            self._past.pop(0)
        self._future.clear()
        return True

    def undo(self) -> Optional[MindMap]:
        if not self._past:
            return None
        self._future.append(self.present)
        self.present = self._past.pop()
        return self.present

    def redo(self) -> Optional[MindMap]:
        if not self._future:
            return None
        self._past.append(self.present)
        self.present = self._future.pop()
        return self.present

    def clear(self):
        self._past.clear()
        self._future.clear()
