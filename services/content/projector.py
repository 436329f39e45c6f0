"""Content tree → diagram projection.

Turns the module → topic → lesson tree into positioned nodes and parent→child
edges for the node-graph editor. The layout is a fixed-offset placement done in
one top-to-bottom, left-to-right pass:

    module  at (0,              y)
    topic i at (column,         y + i * topic)
    lesson j at (2 * column,    topic_y + j * lesson)
    then y += module + len(topics) * topic

Modules without topics still advance by `module`. There is no collision
avoidance; a topic whose lessons run taller than `topic` overlaps the next
topic unless `reserve_lesson_extent` is set, in which case each topic reserves
`max(topic, len(lessons) * lesson)` of height instead.
"""

from dataclasses import dataclass
from typing import Any, Iterable, List, Sequence

from packages.schemas.content import ContentGraph, GraphEdge, GraphNode, NodeData, Position


@dataclass(frozen=True)
class LayoutSpacing:
    """Fixed offsets (diagram units) used by `project_tree`."""
    module: int = 300
    topic: int = 250
    lesson: int = 200
    column: int = 300
    reserve_lesson_extent: bool = False


DEFAULT_SPACING = LayoutSpacing()


def _children(item: Any, attr: str) -> List[Any]:
    value = item.get(attr) if isinstance(item, dict) else getattr(item, attr, None)
    return list(value or [])


def _field(item: Any, attr: str, default: Any = None) -> Any:
    value = item.get(attr) if isinstance(item, dict) else getattr(item, attr, None)
    return default if value is None else value


def _module_actions(module_id: str) -> dict[str, str]:
    return {
        "edit": f"PATCH /content/modules/{module_id}",
        "add_topic": f"POST /content/modules/{module_id}/topics",
    }


def _topic_actions(topic_id: str) -> dict[str, str]:
    return {
        "edit": f"PATCH /content/topics/{topic_id}",
        "add_lesson": f"POST /content/topics/{topic_id}/lessons",
    }


def _lesson_actions(lesson_id: str) -> dict[str, str]:
    return {"edit": f"PATCH /content/lessons/{lesson_id}"}


def _edge(parent: str, child: str) -> GraphEdge:
    return GraphEdge(id=f"edge-{parent}-{child}", source=parent, target=child)


def _topic_slot(lesson_count: int, spacing: LayoutSpacing) -> int:
    if spacing.reserve_lesson_extent:
        return max(spacing.topic, lesson_count * spacing.lesson)
    return spacing.topic


def project_tree(modules: Iterable[Any], spacing: LayoutSpacing = DEFAULT_SPACING) -> ContentGraph:
    """Project a content tree into diagram nodes and edges.

    Args:
        modules: Ordered modules; each may be a `Module` schema, ORM row or dict
            with nested `topics` / `lessons`. Missing nested lists count as empty.
        spacing: Layout offsets.

    Returns:
        ContentGraph: nodes in visit order (module, its topics, each topic's
        lessons) and one edge per direct parent→child link.
    """
    nodes: List[GraphNode] = []
    edges: List[GraphEdge] = []
    y = 0

    for module in modules:
        module_id = str(_field(module, "id"))
        module_node = f"module-{module_id}"
        topics: Sequence[Any] = _children(module, "topics")
        nodes.append(GraphNode(
            id=module_node,
            type="module",
            position=Position(x=0, y=y),
            data=NodeData(
                id=module_id,
                title=_field(module, "title", ""),
                description=_field(module, "description", ""),
                is_published=bool(_field(module, "is_published", False)),
                topics_count=len(topics),
                actions=_module_actions(module_id),
            ),
        ))

        topic_y = y
        reserved = 0
        for topic in topics:
            topic_id = str(_field(topic, "id"))
            topic_node = f"topic-{topic_id}"
            lessons = _children(topic, "lessons")
            nodes.append(GraphNode(
                id=topic_node,
                type="topic",
                position=Position(x=spacing.column, y=topic_y),
                data=NodeData(
                    id=topic_id,
                    title=_field(topic, "title", ""),
                    description=_field(topic, "description", ""),
                    is_published=bool(_field(topic, "is_published", False)),
                    lessons_count=len(lessons),
                    actions=_topic_actions(topic_id),
                ),
            ))
            edges.append(_edge(module_node, topic_node))

            for j, lesson in enumerate(lessons):
                lesson_id = str(_field(lesson, "id"))
                lesson_node = f"lesson-{lesson_id}"
                nodes.append(GraphNode(
                    id=lesson_node,
                    type="lesson",
                    position=Position(x=2 * spacing.column, y=topic_y + j * spacing.lesson),
                    data=NodeData(
                        id=lesson_id,
                        title=_field(lesson, "title", ""),
                        description=_field(lesson, "description", ""),
                        is_published=bool(_field(lesson, "is_published", False)),
                        youtube_url=_field(lesson, "youtube_url"),
                        actions=_lesson_actions(lesson_id),
                    ),
                ))
                edges.append(_edge(topic_node, lesson_node))

            slot = _topic_slot(len(lessons), spacing)
            topic_y += slot
            reserved += slot

        y += spacing.module + reserved

    return ContentGraph(nodes=nodes, edges=edges)
