"""Typed node result payloads.

Every work function returns one member of the ``NodePayload`` tagged union
(discriminated on ``data_type``). Downstream nodes read upstream payloads from
the run context, so the shape of each kind is fixed here rather than left as
an arbitrary mapping.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class BasePayload(BaseModel):
    """Fields shared by every payload kind."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    node_id: str
    node_type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    record_count: int = Field(default=0, ge=0)


class DataFramePayload(BasePayload):
    data_type: Literal["dataframe"] = "dataframe"
    columns: tuple[str, ...] = ()
    query: str | None = None
    filter_condition: str | None = None
    transformations: tuple[str, ...] = ()
    aggregations: tuple[str, ...] = ()
    join_type: str | None = None
    join_keys: tuple[str, ...] = ()


class JsonPayload(BasePayload):
    data_type: Literal["json"] = "json"
    endpoint: str
    status_code: int = 200


class SplitPart(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    record_count: int = Field(ge=0)


class SplitPayload(BasePayload):
    data_type: Literal["multiple_dataframes"] = "multiple_dataframes"
    splits: tuple[SplitPart, ...] = ()


class ModelPayload(BasePayload):
    data_type: Literal["model"] = "model"
    model_type: str
    accuracy: float = Field(ge=0.0, le=1.0)
    training_time_s: float = Field(default=0.0, ge=0.0)


class PredictionsPayload(BasePayload):
    data_type: Literal["predictions"] = "predictions"
    prediction_count: int = Field(ge=0)
    confidence_score: float = Field(ge=0.0, le=1.0)


class MetricsPayload(BasePayload):
    data_type: Literal["metrics"] = "metrics"
    accuracy: float = Field(ge=0.0, le=1.0)
    precision: float = Field(ge=0.0, le=1.0)
    recall: float = Field(ge=0.0, le=1.0)
    f1_score: float = Field(ge=0.0, le=1.0)


class FilePayload(BasePayload):
    data_type: Literal["file"] = "file"
    filepath: str
    records_written: int = Field(ge=0)


class DatabasePayload(BasePayload):
    data_type: Literal["database"] = "database"
    table: str
    records_inserted: int = Field(ge=0)


class ApiPayload(BasePayload):
    data_type: Literal["api"] = "api"
    endpoint: str
    status_code: int = 200
    records_sent: int = Field(ge=0)


class GenericPayload(BasePayload):
    """Payload for node types without a dedicated shape."""

    data_type: Literal["unknown"] = "unknown"
    message: str = ""
    values: dict[str, Any] = Field(default_factory=dict)


NodePayload = Annotated[
    DataFramePayload
    | JsonPayload
    | SplitPayload
    | ModelPayload
    | PredictionsPayload
    | MetricsPayload
    | FilePayload
    | DatabasePayload
    | ApiPayload
    | GenericPayload,
    Field(discriminator="data_type"),
]

_PAYLOAD_ADAPTER: TypeAdapter[NodePayload] = TypeAdapter(NodePayload)


def validate_payload(data: Any) -> NodePayload:
    """Coerce a work-function result into a payload model.

    Raises
    ------
    pydantic.ValidationError
        If ``data`` matches no payload kind
    """
    if isinstance(data, BasePayload):
        return data  # type: ignore[return-value]
    return _PAYLOAD_ADAPTER.validate_python(data)


def payload_to_outputs(payload: BasePayload) -> dict[str, Any]:
    """JSON-friendly dump of a payload, stored on the node execution entry."""
    return payload.model_dump(mode="json")
