"""
マインドマップ編集操作

選択ノードを起点に子・兄弟の追加、名前変更、削除、折りたたみを行う。
各操作の後に自動レイアウトを適用し、履歴に反映する。

使用例:
    editor = MindMapEditor(MindMap.from_dict(session["mindMapData"]))
    editor.add_child()
    editor.rename(editor.focus_id, "キャリアの悩み")
    editor.undo()
    data = editor.mind_map.to_dict()
"""

import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Set

from memento.mindmap.history import MindMapHistory
from memento.mindmap.layout import apply_layout
from memento.mindmap.models import (
    NEW_TOPIC_LABEL,
    NODE_TYPE,
    ROOT_NODE_ID,
    MindMap,
    MindMapEdge,
    MindMapNode,
    Position,
)

CHILD_OFFSET_X = 200
SIBLING_OFFSET_Y = 100
NAVIGATION_DIRECTIONS = ("parent", "child", "prev", "next")


def _millis_id() -> str:
    return str(int(time.time() * 1000))


class MindMapEditor:
    """履歴付きのマインドマップエディタ"""

    def __init__(self, mind_map: MindMap, id_factory: Optional[Callable[[], str]] = None):
        self.history = MindMapHistory(mind_map)
        self.focus_id: Optional[str] = None
        self._id_factory = id_factory or _millis_id

    @property
    def mind_map(self) -> MindMap:
        return self.history.present

    def _new_id(self) -> str:
        new_id = self._id_factory()
        existing = {node.id for node in self.mind_map.nodes}
        while new_id in existing:
            new_id = str(int(new_id) + 1) if new_id.isdigit() else f"{new_id}_"
        return new_id

    def _commit(self, mind_map: MindMap, focus_id: Optional[str] = None) -> MindMap:
        self.history.set(apply_layout(mind_map))
        self.focus_id = focus_id
        return self.mind_map

    def _selected(self) -> Optional[MindMapNode]:
        selected = self.mind_map.selected_nodes()
        return selected[0] if selected else None

    def _add_under(self, parent_id: str, position: Position) -> str:
        new_id = self._new_id()
        new_node = MindMapNode(
            id=new_id,
            label=NEW_TOPIC_LABEL,
            type=NODE_TYPE,
            expanded=True,
            position=position,
            selected=True,
        )
        nodes = [replace(node, selected=False) for node in self.mind_map.nodes]
        nodes.append(new_node)
        edges = list(self.mind_map.edges) + [MindMapEdge(source=parent_id, target=new_id)]
        self._commit(self.mind_map.with_nodes(nodes, edges), focus_id=new_id)
        return new_id

    def add_child(self) -> Optional[str]:
        """選択ノードに子を追加（追加したノードのIDを返す。選択なしは None）"""
        selected = self._selected()
        if selected is None:
            return None
        position = Position(x=selected.position.x + CHILD_OFFSET_X, y=selected.position.y)
        return self._add_under(selected.id, position)

    def add_sibling(self) -> Optional[str]:
        """選択ノードに兄弟を追加（親のないノードでは何もしない）"""
        selected = self._selected()
        if selected is None:
            return None
        parent_id = self.mind_map.parent_of(selected.id)
        if parent_id is None:
            return None
        position = Position(x=selected.position.x, y=selected.position.y + SIBLING_OFFSET_Y)
        return self._add_under(parent_id, position)

    def rename(self, node_id: str, label: str) -> bool:
        """ラベルを変更し、そのノードを選択する"""
        if self.mind_map.node(node_id) is None:
            return False
        nodes = [
            replace(node, label=label, selected=True) if node.id == node_id
            else replace(node, selected=False)
            for node in self.mind_map.nodes
        ]
        self.history.set(self.mind_map.with_nodes(nodes))
        self.focus_id = node_id
        return True

    def _descendants(self, node_ids: List[str]) -> Set[str]:
        found: Set[str] = set()
        frontier = list(node_ids)
        while frontier:
            children = [
                edge.target for edge in self.mind_map.edges
                if edge.source in frontier and edge.target not in found
            ]
            found.update(children)
            frontier = children
        return found

    def delete_selected(self) -> Set[str]:
        """
        選択ノードとその子孫を削除

        ルートノードは削除しない。最初に削除したノードの親を選択・フォーカスする。

        Returns:
            削除したノードIDの集合
        """
        targets = [node.id for node in self.mind_map.selected_nodes() if node.id != ROOT_NODE_ID]
        if not targets:
            return set()

        to_delete = set(targets) | self._descendants(targets)
        to_delete.discard(ROOT_NODE_ID)
        focus_id = self.mind_map.parent_of(targets[0])

        nodes = [
            replace(node, selected=(focus_id is not None and node.id == focus_id))
            for node in self.mind_map.nodes
            if node.id not in to_delete
        ]
        edges = [
            edge for edge in self.mind_map.edges
            if edge.source not in to_delete and edge.target not in to_delete
        ]
        self._commit(self.mind_map.with_nodes(nodes, edges), focus_id=focus_id)
        return to_delete

    def toggle_expansion(self, node_id: str, expand: Optional[bool] = None) -> bool:
        """折りたたみ状態を切り替え（expand 指定時はその値にする）"""
        if self.mind_map.node(node_id) is None:
            return False
        nodes = [
            replace(node, expanded=(expand if expand is not None else not node.expanded))
            if node.id == node_id else node
            for node in self.mind_map.nodes
        ]
        self._commit(self.mind_map.with_nodes(nodes), focus_id=self.focus_id)
        return True

    def select(self, node_id: str) -> bool:
        """ノードを選択（履歴には残らない）"""
        if self.mind_map.node(node_id) is None:
            return False
        nodes = [replace(node, selected=node.id == node_id) for node in self.mind_map.nodes]
        self.history.set(self.mind_map.with_nodes(nodes))
        self.focus_id = node_id
        return True

    def _visible_sorted(self, node_ids: List[str]) -> List[MindMapNode]:
        nodes = [self.mind_map.node(node_id) for node_id in node_ids]
        visible = [node for node in nodes if node is not None and not node.hidden]
        return sorted(visible, key=lambda node: node.position.y)

    def navigate(self, direction: str) -> Optional[str]:
        """
        選択ノードから隣のノードへ選択を移す（キーボード操作用）

        parent: 親へ
        child:  表示中の子のうち上下の真ん中へ（折りたたみ中は移動しない）
        prev / next: 表示位置の上下で隣の兄弟へ（親のないノード同士は兄弟扱い）

        Returns:
            移動先のノードID。移動できなければ None

        Raises:
            ValueError: 未知の方向
        """
        if direction not in NAVIGATION_DIRECTIONS:
            raise ValueError(f"Unknown navigation direction: {direction}")
        selected = self._selected()
        if selected is None:
            return None

        parent_id = self.mind_map.parent_of(selected.id)
        next_id: Optional[str] = None
        if direction == "parent":
            next_id = parent_id
        elif direction == "child":
            if selected.expanded is not False:
                children = self._visible_sorted(self.mind_map.children_of(selected.id))
                if children:
                    next_id = children[len(children) // 2].id
        else:
            if parent_id is not None:
                siblings = self._visible_sorted(self.mind_map.children_of(parent_id))
            else:
                targets = {edge.target for edge in self.mind_map.edges}
                siblings = self._visible_sorted([n.id for n in self.mind_map.nodes if n.id not in targets])
            ids = [node.id for node in siblings]
            if selected.id in ids:
                index = ids.index(selected.id) + (-1 if direction == "prev" else 1)
                if 0 <= index < len(ids):
                    next_id = ids[index]

        if next_id is None or not self.select(next_id):
            return None
        return next_id

    def layout(self) -> MindMap:
        return self._commit(self.mind_map, focus_id=self.focus_id)

    def undo(self) -> bool:
        return self.history.undo() is not None

    def redo(self) -> bool:
        return self.history.redo() is not None

    def apply(self, operation: Dict[str, Any]) -> Any:
        """
        操作を1件適用

        operation 例:
            {"op": "add_child"}
            {"op": "rename", "nodeId": "2", "label": "体調"}
            {"op": "toggle", "nodeId": "2", "expand": False}
            {"op": "navigate", "direction": "next"}

        Raises:
            ValueError: 未知の操作・方向
        """
        op = operation.get("op")
        if op == "add_child":
            return self.add_child()
        if op == "add_sibling":
            return self.add_sibling()
        if op == "rename":
            return self.rename(str(operation["nodeId"]), str(operation.get("label") or ""))
        if op == "delete":
            return sorted(self.delete_selected())
        if op == "toggle":
            return self.toggle_expansion(str(operation["nodeId"]), operation.get("expand"))
        if op == "select":
            return self.select(str(operation["nodeId"]))
        if op == "navigate":
            return self.navigate(str(operation.get("direction")))
        if op == "layout":
            self.layout()
            return True
        if op == "undo":
            return self.undo()
        if op == "redo":
            return self.redo()
        raise ValueError(f"Unknown mind map operation: {op}")
