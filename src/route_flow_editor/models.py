"""
Data models for route-flow-editor package.

This module defines the core data structures:
- Node / Edge / Position: elements of the flow graph being edited
- NodeData variants: typed configuration payload per node type
- NodeChange / EdgeChange: patch records emitted by the canvas
- Route / ModelDefinition / Role / Settings: registry entities
- FlowData / TransientSnapshot: committed and recoverable graph copies

Every model serialises with camelCase keys (the canvas wire format) and
accepts either camelCase or snake_case on input.
"""

import random
import string
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SerializeAsAny,
    TypeAdapter,
    ValidationError,
    ValidationInfo,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from .exceptions import InvalidNodeDataError


class FlowModel(BaseModel):
    """Base model using the camelCase wire format."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert model to a JSON-compatible dictionary.

        Returns:
            Dictionary with camelCase keys.
        """
        return self.model_dump(by_alias=True, mode="json")


class NodeType(str, Enum):
    """Kinds of nodes a route flow can contain."""

    AUTH = "auth"
    URL = "url"
    OUTPUT = "output"
    LOGIC = "logic"
    VARIABLE = "variable"
    DB_FIND = "db-find"
    DB_INSERT = "db-insert"
    DB_UPDATE = "db-update"
    DB_DELETE = "db-delete"
    DB_QUERY = "db-query"


def default_label(node_type: NodeType | str) -> str:
    """
    Derive the display label for a freshly dropped node.

    The first letter is capitalised and the first dash becomes a space,
    so ``db-find`` is labelled ``Db find``.
    """
    value = NodeType(node_type).value
    return value[0].upper() + value[1:].replace("-", " ", 1)


# ==================== Node Data Variants ====================


class NodeData(FlowModel):
    """
    Configuration payload carried by a node.

    Each node type has its own subclass with typed fields. Unknown keys are
    kept so configuration forms can attach extra settings.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    label: str = ""

    @classmethod
    def _normalize_keys(cls, patch: dict[str, Any]) -> dict[str, Any]:
        """Map snake_case field names in a patch to their wire aliases."""
        normalized = {}
        for key, value in patch.items():
            field = cls.model_fields.get(key)
            if field is not None and field.alias:
                key = field.alias
            normalized[key] = value
        return normalized

    def merge(self, patch: dict[str, Any]) -> "NodeData":
        """
        Shallow-merge a patch into this payload.

        The merged mapping is revalidated against this node's own variant,
        so a patch can never turn a url payload into something else.

        Args:
            patch: Keys to overwrite (camelCase or snake_case)

        Returns:
            New payload of the same variant

        Raises:
            InvalidNodeDataError: If the patch violates the variant's field types
        """
        merged = self.model_dump(by_alias=True)
        merged.update(self._normalize_keys(patch))
        try:
            return type(self).model_validate(merged)
        except ValidationError as e:
            raise InvalidNodeDataError(
                f"Invalid data for {type(self).__name__}: {e.error_count()} error(s)"
            ) from e


class AuthNodeData(NodeData):
    auth_type: str = ""
    required_role: str = ""


class UrlNodeData(NodeData):
    path: str = ""
    method: str = ""


class OutputNodeData(NodeData):
    status_code: int | None = None
    response_type: str = ""
    body: str = ""


class LogicNodeData(NodeData):
    condition: str = ""


class VariableNodeData(NodeData):
    name: str = ""
    value: Any = None


class DbFindNodeData(NodeData):
    model: str = ""
    filters: dict[str, Any] = Field(default_factory=dict)


class DbInsertNodeData(NodeData):
    model: str = ""
    values: dict[str, Any] = Field(default_factory=dict)


class DbUpdateNodeData(NodeData):
    model: str = ""
    filters: dict[str, Any] = Field(default_factory=dict)
    values: dict[str, Any] = Field(default_factory=dict)


class DbDeleteNodeData(NodeData):
    model: str = ""
    filters: dict[str, Any] = Field(default_factory=dict)


class DbQueryNodeData(NodeData):
    query: str = ""
    params: list[Any] = Field(default_factory=list)


NODE_DATA_MODELS: dict[NodeType, type[NodeData]] = {
    NodeType.AUTH: AuthNodeData,
    NodeType.URL: UrlNodeData,
    NodeType.OUTPUT: OutputNodeData,
    NodeType.LOGIC: LogicNodeData,
    NodeType.VARIABLE: VariableNodeData,
    NodeType.DB_FIND: DbFindNodeData,
    NodeType.DB_INSERT: DbInsertNodeData,
    NodeType.DB_UPDATE: DbUpdateNodeData,
    NodeType.DB_DELETE: DbDeleteNodeData,
    NodeType.DB_QUERY: DbQueryNodeData,
}


# ==================== Graph Elements ====================


class Position(FlowModel):
    """Canvas coordinates of a node."""

    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0


class Node(FlowModel):
    """
    Represents a node in a route flow.

    Nodes are immutable values: ``id`` and ``type`` never change, and
    updates to ``data`` or ``position`` produce a new Node via copy so that
    untouched nodes keep their object identity.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: f"node_{uuid4().hex[:12]}",
        description="Unique identifier for the node",
        min_length=1,
    )
    type: NodeType = Field(
        ...,
        description="Node kind; selects the data variant",
    )
    position: Position = Field(
        default_factory=Position,
        description="Canvas coordinates",
    )
    data: SerializeAsAny[NodeData] = Field(
        default_factory=dict,
        description="Typed configuration payload for this node type",
        validate_default=True,
    )

    @field_validator("data", mode="before")
    @classmethod
    def coerce_data_variant(cls, v: Any, info: ValidationInfo) -> Any:
        """Validate the payload against the variant matching ``type``."""
        node_type = info.data.get("type")
        if node_type is None:
            # type itself failed validation; let that error surface
            return v
        data_cls = NODE_DATA_MODELS[NodeType(node_type)]
        if isinstance(v, data_cls):
            return v
        if isinstance(v, BaseModel):
            v = v.model_dump(by_alias=True)
        return data_cls.model_validate(v or {})

    @classmethod
    def create(
        cls,
        node_type: NodeType | str,
        position: Position | dict[str, float] | None = None,
        node_id: str | None = None,
        **data: Any,
    ) -> "Node":
        """
        Build a node with a default label for its type.

        Args:
            node_type: Kind of node
            position: Canvas coordinates (default: origin)
            node_id: Explicit id (default: generated)
            **data: Payload fields; ``label`` overrides the derived label

        Returns:
            The created Node
        """
        data.setdefault("label", default_label(node_type))
        fields: dict[str, Any] = {"type": node_type, "data": data}
        if position is not None:
            fields["position"] = position
        if node_id is not None:
            fields["id"] = node_id
        return cls.model_validate(fields)

    def with_data(self, patch: dict[str, Any]) -> "Node":
        """Return a copy with ``patch`` shallow-merged into ``data``."""
        return self.model_copy(update={"data": self.data.merge(patch)})

    def with_position(self, position: Position) -> "Node":
        """Return a copy placed at ``position``."""
        return self.model_copy(update={"position": position})


class Edge(FlowModel):
    """
    Represents a connection between two nodes of the same flow.

    Duplicate connections between the same endpoints are allowed; every
    edge gets its own id.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: f"edge_{uuid4().hex[:12]}",
        description="Unique identifier for the edge",
        min_length=1,
    )
    source: str = Field(..., description="ID of the source node", min_length=1)
    target: str = Field(..., description="ID of the target node", min_length=1)
    source_handle: str | None = None
    target_handle: str | None = None


class FlowData(FlowModel):
    """Committed node/edge snapshot stored on a route."""

    model_config = ConfigDict(frozen=True)

    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_graph(self) -> "FlowData":
        """Reject repeated ids and edges whose endpoints are not in ``nodes``."""
        node_ids = [node.id for node in self.nodes]
        if len(set(node_ids)) != len(node_ids):
            raise ValueError("Flow repeats a node id")
        edge_ids = [edge.id for edge in self.edges]
        if len(set(edge_ids)) != len(edge_ids):
            raise ValueError("Flow repeats an edge id")
        known = set(node_ids)
        for edge in self.edges:
            if edge.source not in known or edge.target not in known:
                raise ValueError(
                    f"Edge '{edge.id}' references a missing node "
                    f"('{edge.source}' -> '{edge.target}')"
                )
        return self


class TransientSnapshot(FlowModel):
    """Recoverable copy of an in-progress graph, stamped with its owning route."""

    route_id: str = Field(..., min_length=1)
    nodes: list[Node] = Field(default_factory=list)
    edges: list[Edge] = Field(default_factory=list)


# ==================== Canvas Changes ====================


class NodeAddChange(FlowModel):
    type: Literal["add"] = "add"
    item: Node


class NodeRemoveChange(FlowModel):
    type: Literal["remove"] = "remove"
    id: str


class NodePositionChange(FlowModel):
    type: Literal["position"] = "position"
    id: str
    position: Position | None = None
    dragging: bool | None = None


class NodeSelectChange(FlowModel):
    type: Literal["select"] = "select"
    id: str
    selected: bool = True


NodeChange = Annotated[
    Union[NodeAddChange, NodeRemoveChange, NodePositionChange, NodeSelectChange],
    Field(discriminator="type"),
]


class EdgeAddChange(FlowModel):
    type: Literal["add"] = "add"
    item: Edge


class EdgeRemoveChange(FlowModel):
    type: Literal["remove"] = "remove"
    id: str


class EdgeSelectChange(FlowModel):
    type: Literal["select"] = "select"
    id: str
    selected: bool = True


EdgeChange = Annotated[
    Union[EdgeAddChange, EdgeRemoveChange, EdgeSelectChange],
    Field(discriminator="type"),
]

_node_changes_adapter = TypeAdapter(list[NodeChange])
_edge_changes_adapter = TypeAdapter(list[EdgeChange])


def parse_node_changes(raw: list[dict[str, Any]]) -> list[NodeChange]:
    """Validate a canvas node patch list."""
    return _node_changes_adapter.validate_python(raw)


def parse_edge_changes(raw: list[dict[str, Any]]) -> list[EdgeChange]:
    """Validate a canvas edge patch list."""
    return _edge_changes_adapter.validate_python(raw)


# ==================== Registry Entities ====================


class Route(FlowModel):
    """
    A URL + method entity that owns a committed flow.

    ``flow_data`` is replaced wholesale on save, never edited in place.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(
        default_factory=lambda: f"route_{uuid4().hex[:12]}",
        min_length=1,
    )
    name: str = ""
    method: str = "GET"
    url: str = ""
    flow_data: FlowData | None = None


class ModelField(FlowModel):
    name: str
    type: str = "string"
    default_value: str = ""
    validation: str = ""
    mapping: str | None = None


class ModelDefinition(FlowModel):
    """A data model the db-* nodes operate on."""

    id: str = Field(default_factory=lambda: f"model_{uuid4().hex[:12]}", min_length=1)
    name: str = ""
    fields: list[ModelField] = Field(default_factory=list)


class RolePermissions(FlowModel):
    auth_required: bool = False
    routes: list[str] = Field(default_factory=list)
    can_create_users: bool | None = None
    can_edit_users: bool | None = None
    can_delete_users: bool | None = None
    can_manage_roles: bool | None = None


class Role(FlowModel):
    id: str = Field(default_factory=lambda: f"role_{uuid4().hex[:12]}", min_length=1)
    name: str = ""
    slug: str = ""
    permissions: RolePermissions = Field(default_factory=RolePermissions)


def _generate_global_key() -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"key_{millis}_{suffix}"


def _default_db_name() -> str:
    return f"database_{datetime.now(timezone.utc).date().isoformat()}"


class Settings(FlowModel):
    """Project-wide settings edited through the settings form."""

    global_key: str = Field(default_factory=_generate_global_key)
    database_type: str = "mysql"
    auth_type: str = "session"
    timezone: str = "UTC"
    db_host: str = "localhost"
    db_port: str = "3306"
    db_user: str = "root"
    db_password: str = "root"
    db_name: str = Field(default_factory=_default_db_name)
