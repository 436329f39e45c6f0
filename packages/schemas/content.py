"""Content schemas: the module → topic → lesson tree and its graph projection."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from typing import Dict, List, Literal, Optional

NodeKind = Literal["module", "topic", "lesson"]


class _Tree(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = ""
    order_index: int = 0
    is_published: bool = False


class Lesson(_Tree):
    """A single lesson with an optional external video reference."""
    topic_id: Optional[str] = None
    youtube_url: Optional[str] = None


class Topic(_Tree):
    """A topic inside a module, owning ordered lessons."""
    module_id: Optional[str] = None
    lessons: List[Lesson] = Field(default_factory=list)

    @field_validator("lessons", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return v or []


class Module(_Tree):
    """A course module grouping ordered topics."""
    cover_image_url: Optional[str] = None
    topics: List[Topic] = Field(default_factory=list)

    @field_validator("topics", mode="before")
    @classmethod
    def _none_is_empty(cls, v):
        return v or []


class ContentNode(BaseModel):
    """Flat view of one module/topic/lesson row, returned by create and update."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    description: Optional[str] = ""
    order_index: int
    is_published: bool
    module_id: Optional[str] = None
    topic_id: Optional[str] = None
    youtube_url: Optional[str] = None
    cover_image_url: Optional[str] = None
    created_at: Optional[datetime] = None


class CreateContent(BaseModel):
    """Payload for creating a module, topic or lesson."""
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""
    is_published: bool = False
    youtube_url: Optional[str] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        return v


class UpdateContent(BaseModel):
    """Partial update; unset fields are left untouched."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    is_published: Optional[bool] = None
    order_index: Optional[int] = Field(default=None, ge=1)
    youtube_url: Optional[str] = None

    @field_validator("title", "is_published", "order_index")
    @classmethod
    def _not_null(cls, v, info: ValidationInfo):
        if v is None:
            raise ValueError(f"{info.field_name} cannot be null")
        return v

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("title is required")
        return v


class Position(BaseModel):
    x: float
    y: float


class NodeData(BaseModel):
    """Payload shown inside a diagram node."""
    id: str
    title: str
    description: str = ""
    is_published: bool = False
    topics_count: Optional[int] = None
    lessons_count: Optional[int] = None
    youtube_url: Optional[str] = None
    actions: Dict[str, str] = Field(default_factory=dict)


class GraphNode(BaseModel):
    id: str
    type: NodeKind
    position: Position
    data: NodeData


class GraphEdge(BaseModel):
    id: str
    source: str
    target: str
    type: str = "smoothstep"


class ContentGraph(BaseModel):
    """Positioned nodes and parent→child edges for the content editor diagram."""
    nodes: List[GraphNode] = Field(default_factory=list)
    edges: List[GraphEdge] = Field(default_factory=list)


class ClassroomLesson(Lesson):
    """A published lesson as seen by a learner."""
    completed: bool = False
    embed_url: Optional[str] = None


class ClassroomTopic(_Tree):
    lessons: List[ClassroomLesson] = Field(default_factory=list)


class ClassroomModule(_Tree):
    cover_image_url: Optional[str] = None
    topics: List[ClassroomTopic] = Field(default_factory=list)


class CompletionResult(BaseModel):
    lesson_id: str
    completed: bool = True
    points_awarded: int = 0
