from collections.abc import Iterator
from enum import Enum

from loguru import logger

from cpuscope.profile.types import CpuProfile, ProfileNode, SampleAggregation


class _VisitState(Enum):
    IN_PROGRESS = 1
    DONE = 2


class CallTree:
    """Id-indexed arena of profile nodes with single-parent links."""

    def __init__(self, nodes: list[ProfileNode]) -> None:
        self.nodes: dict[int, ProfileNode] = {}
        for node in nodes:
            if node.id in self.nodes:
                logger.warning(f"Duplicate profile node id {node.id}, keeping the first one")
                continue
            self.nodes[node.id] = node

    def __iter__(self) -> Iterator[ProfileNode]:
        return iter(self.nodes.values())

    def __len__(self) -> int:
        return len(self.nodes)

    def get(self, node_id: int) -> ProfileNode | None:
        return self.nodes.get(node_id)

    def _attach(self, parent: ProfileNode, child_id: int) -> None:
        child = self.nodes.get(child_id)
        # unknown child ids are leaf boundaries
        if child is None or child.id == parent.id:
            return
        if child.parent_id is not None:
            if child.parent_id != parent.id:
                logger.debug(f"Node {child_id} already has parent {child.parent_id}, ignoring parent {parent.id}")
            return
        child.parent_id = parent.id
        parent.child_ids.append(child_id)

    def link(self) -> None:
        for node in self.nodes.values():
            node.parent_id = None
            node.child_ids = []
        for node in self.nodes.values():
            for child_id in node.children:
                self._attach(node, child_id)
        # some exporters only record the parent side of the edge
        for node in self.nodes.values():
            if node.parent is not None and node.parent_id is None:
                parent = self.nodes.get(node.parent)
                if parent is not None:
                    self._attach(parent, node.id)

    def roots(self) -> list[ProfileNode]:
        return [node for node in self.nodes.values() if node.parent_id is None]

    def path_to_root(self, node_id: int) -> list[ProfileNode]:
        """Nodes from the root down to `node_id` (inclusive)."""
        path: list[ProfileNode] = []
        seen: set[int] = set()
        current = self.nodes.get(node_id)
        while current is not None and current.id not in seen:
            seen.add(current.id)
            path.append(current)
            current = self.nodes.get(current.parent_id) if current.parent_id is not None else None
        path.reverse()
        return path

    def depth(self, node_id: int) -> int:
        return max(len(self.path_to_root(node_id)) - 1, 0)

    def compute_total_times(self) -> None:
        """
        total_time(node) = self_time(node) + sum(total_time(child)).

        Iterative post-order walk: profiles can nest thousands of frames deep. Each subtree
        is summed once whatever the node order. An edge back into a node that is still
        being summed (only possible in malformed input) contributes 0.
        """
        state: dict[int, _VisitState] = {}

        for start_id in self.nodes:
            if start_id in state:
                continue
            stack: list[tuple[int, bool]] = [(start_id, False)]
            while stack:
                node_id, children_done = stack.pop()
                node = self.nodes[node_id]
                if children_done:
                    total = node.self_time
                    for child_id in node.child_ids:
                        if state.get(child_id) is _VisitState.DONE:
                            total += self.nodes[child_id].total_time
                    node.total_time = total
                    state[node_id] = _VisitState.DONE
                    continue
                if node_id in state:
                    continue
                state[node_id] = _VisitState.IN_PROGRESS
                stack.append((node_id, True))
                for child_id in reversed(node.child_ids):
                    if child_id not in state:
                        stack.append((child_id, False))


def build_call_tree(profile: CpuProfile, aggregation: SampleAggregation) -> CallTree:
    """Link the profile's nodes into a tree and fill in self/total times and hit counts."""
    tree = CallTree(profile.nodes)
    tree.link()

    for node in tree:
        node.self_time = aggregation.self_times.get(node.id, 0)
        node.hit_count = aggregation.hit_counts.get(node.id, 0)

    orphans = [node_id for node_id in aggregation.self_times if node_id not in tree.nodes]
    if len(orphans) > 0:
        logger.warning(f"{len(orphans)} sampled node ids are missing from the profile nodes: {orphans[:5]}")

    tree.compute_total_times()
    return tree
