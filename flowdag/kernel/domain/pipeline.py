"""Pipeline graph primitives: Node, Edge and PipelineGraph.

Nodes and edges are immutable for the duration of a run; the graph they form is
owned by the caller and only read by the engine.
"""

from __future__ import annotations

import sys
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class NodeCategory(StrEnum):
    """Coarse grouping of node types."""

    INPUT = "input"
    TRANSFORM = "transform"
    OUTPUT = "output"
    MODEL = "model"
    STORAGE = "storage"


class NodeType(StrEnum):
    """Closed set of node kinds a pipeline can contain."""

    CSV_INPUT = "csv_input"
    JSON_INPUT = "json_input"
    PARQUET_INPUT = "parquet_input"
    DATABASE_INPUT = "database_input"
    API_INPUT = "api_input"

    PROCESS = "process"
    TRANSFORM = "transform"
    FILTER = "filter"
    AGGREGATE = "aggregate"
    JOIN = "join"
    SPLIT = "split"

    CSV_OUTPUT = "csv_output"
    JSON_OUTPUT = "json_output"
    PARQUET_OUTPUT = "parquet_output"
    DATABASE_OUTPUT = "database_output"
    API_OUTPUT = "api_output"

    MODEL_TRAIN = "model_train"
    MODEL_PREDICT = "model_predict"
    MODEL_EVALUATE = "model_evaluate"

    DATA_LAKE = "data_lake"
    DATA_WAREHOUSE = "data_warehouse"
    DATA_MART = "data_mart"
    BI_TOOL = "bi_tool"

    @property
    def category(self) -> NodeCategory:
        """Category this node type belongs to."""
        return _CATEGORIES[self]


_CATEGORIES: dict[NodeType, NodeCategory] = {
    **dict.fromkeys(
        (
            NodeType.CSV_INPUT,
            NodeType.JSON_INPUT,
            NodeType.PARQUET_INPUT,
            NodeType.DATABASE_INPUT,
            NodeType.API_INPUT,
        ),
        NodeCategory.INPUT,
    ),
    **dict.fromkeys(
        (
            NodeType.PROCESS,
            NodeType.TRANSFORM,
            NodeType.FILTER,
            NodeType.AGGREGATE,
            NodeType.JOIN,
            NodeType.SPLIT,
        ),
        NodeCategory.TRANSFORM,
    ),
    **dict.fromkeys(
        (
            NodeType.CSV_OUTPUT,
            NodeType.JSON_OUTPUT,
            NodeType.PARQUET_OUTPUT,
            NodeType.DATABASE_OUTPUT,
            NodeType.API_OUTPUT,
        ),
        NodeCategory.OUTPUT,
    ),
    **dict.fromkeys(
        (NodeType.MODEL_TRAIN, NodeType.MODEL_PREDICT, NodeType.MODEL_EVALUATE),
        NodeCategory.MODEL,
    ),
    **dict.fromkeys(
        (NodeType.DATA_LAKE, NodeType.DATA_WAREHOUSE, NodeType.DATA_MART, NodeType.BI_TOOL),
        NodeCategory.STORAGE,
    ),
}


class Node(BaseModel):
    """A unit of work in a pipeline graph.

    Attributes
    ----------
    id : str
        Unique within a graph
    type : NodeType
        Selects the work function that runs the node
    label : str
        Human readable name (defaults to the id)
    parameters : dict[str, Any]
        Free-form node configuration handed to the work function
    dataset : str | None
        Optional data catalog entry id
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(min_length=1)
    type: NodeType
    label: str = ""
    description: str | None = None
    parameters: dict[str, Any] = Field(default_factory=dict)
    dataset: str | None = None
    tags: tuple[str, ...] = ()

    @field_validator("id")
    @classmethod
    def _intern_id(cls, value: str) -> str:
        return sys.intern(value)

    @model_validator(mode="before")
    @classmethod
    def _default_label(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("label") and data.get("id"):
            return {**data, "label": data["id"]}
        return data

    def __repr__(self) -> str:
        return f"Node('{self.id}', {self.type.value})"


class Edge(BaseModel):
    """A directed dependency: ``target`` runs after ``source``."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str
    source: str
    target: str
    label: str | None = None
    transfer_type: Literal["realtime", "batch"] | None = None
    dataset: str | None = None

    def __repr__(self) -> str:
        return f"Edge('{self.id}', {self.source} -> {self.target})"


class PipelineGraph(BaseModel):
    """A named pipeline: the caller-owned graph handed to the engine."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str = ""
    description: str | None = None
    nodes: tuple[Node, ...] = ()
    edges: tuple[Edge, ...] = ()
    parameters: dict[str, Any] = Field(default_factory=dict)
    tags: tuple[str, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name") and data.get("id"):
            return {**data, "name": data["id"]}
        return data

    @property
    def node_ids(self) -> list[str]:
        return [node.id for node in self.nodes]
