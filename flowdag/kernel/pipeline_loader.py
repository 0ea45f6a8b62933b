"""Load pipeline graphs from YAML or JSON files.

Two layouts are accepted::

    # flat
    id: etl
    nodes: [...]
    edges: [...]

    # manifest
    kind: Pipeline
    metadata:
      name: etl
    spec:
      nodes: [...]
      edges: [...]
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from flowdag.kernel.domain.pipeline import PipelineGraph
from flowdag.kernel.exceptions import ConfigurationError
from flowdag.kernel.logging import get_logger

logger = get_logger(__name__)


def parse_pipeline(data: Any, source: str = "<memory>") -> PipelineGraph:
    """Validate already-parsed pipeline data.

    Raises
    ------
    ConfigurationError
        If the data is not a mapping or does not describe a valid pipeline
    """
    if not isinstance(data, dict):
        raise ConfigurationError(source, f"expected a mapping, got {type(data).__name__}")

    if "spec" in data:
        metadata = data.get("metadata") or {}
        body = dict(data["spec"] or {})
        body.setdefault("id", metadata.get("id") or metadata.get("name"))
        body.setdefault("name", metadata.get("name"))
        body.setdefault("description", metadata.get("description"))
    else:
        body = dict(data)

    if not body.get("id"):
        body["id"] = Path(source).stem if source != "<memory>" else "pipeline"
    body = {key: value for key, value in body.items() if value is not None}

    try:
        return PipelineGraph.model_validate(body)
    except PydanticValidationError as e:
        raise ConfigurationError(source, f"invalid pipeline definition: {e}") from e


def load_pipeline(path: str | Path) -> PipelineGraph:
    """Read a ``.yaml``/``.yml`` or ``.json`` pipeline file.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist
    ConfigurationError
        If the file cannot be parsed into a pipeline
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        data = json.loads(text) if path.suffix == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigurationError(path.name, f"could not parse file: {e}") from e

    pipeline = parse_pipeline(data, source=str(path))
    logger.debug(
        "Loaded pipeline '{pipeline}' with {nodes} nodes and {edges} edges",
        pipeline=pipeline.id,
        nodes=len(pipeline.nodes),
        edges=len(pipeline.edges),
    )
    return pipeline
