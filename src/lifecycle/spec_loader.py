"""Desired-state file loading with validation.

SECURITY: File reads enforce a size limit. Input validation is performed at
the boundary by the resource type's pydantic model.

Two document layouts are accepted:

    # Kubernetes-style
    apiVersion: lifecycle/v1
    kind: aws_eks_addon
    metadata:
      name: vpc-cni
    spec:
      clusterName: prod
      addonName: vpc-cni

    # Flat
    type: aws_eks_addon
    clusterName: prod
    addonName: vpc-cni
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .config import MAX_SPEC_FILE_SIZE_BYTES
from .models import DesiredState
from .registry import ResourceType, get_resource_type

logger = logging.getLogger(__name__)


class SpecLoadError(Exception):
    """Raised when a desired-state file cannot be loaded or fails validation."""

    pass


def parse_desired_state(
    raw_data: Any, registry: dict[str, ResourceType], source: str = "<document>"
) -> tuple[ResourceType, DesiredState]:
    """Validate an already-parsed document against its resource type.

    Raises:
        SpecLoadError: If the document is not a mapping, names an unknown
            type, or fails model validation.
    """
    if not isinstance(raw_data, dict):
        raise SpecLoadError(f"Desired state must be a YAML mapping: {source}")

    if "apiVersion" in raw_data and "spec" in raw_data:
        type_name = raw_data.get("kind")
        spec_data = raw_data.get("spec") or {}
        if not isinstance(spec_data, dict):
            raise SpecLoadError(f"Spec section must be a mapping: {source}")
    else:
        spec_data = dict(raw_data)
        type_name = spec_data.pop("type", None)

    if not type_name:
        raise SpecLoadError(f"Desired state does not name a resource type: {source}")

    try:
        resource_type = get_resource_type(registry, str(type_name))
    except ValueError as e:
        raise SpecLoadError(str(e)) from e

    try:
        desired = resource_type.desired_model.model_validate(spec_data)
    except ValidationError as e:
        # Format Pydantic validation errors for readability
        errors = []
        for error in e.errors():
            loc = ".".join(str(x) for x in error["loc"])
            msg = error["msg"]
            errors.append(f"  - {loc}: {msg}")

        error_list = "\n".join(errors)
        raise SpecLoadError(f"Validation failed for {source}:\n{error_list}") from e

    return resource_type, desired


def load_desired_state(
    path: Path, registry: dict[str, ResourceType]
) -> tuple[ResourceType, DesiredState]:
    """Load and validate a desired-state document from YAML.

    Returns:
        The resource type named by the document and its validated state.

    Raises:
        SpecLoadError: If the file cannot be read or fails validation.
    """
    if not path.exists():
        raise SpecLoadError(f"Desired-state file not found: {path}")

    # SECURITY: Check file size before reading to prevent DoS
    try:
        file_size = path.stat().st_size
    except OSError as e:
        raise SpecLoadError(f"Failed to stat desired-state file {path}: {e}") from e

    if file_size > MAX_SPEC_FILE_SIZE_BYTES:
        raise SpecLoadError(
            f"Desired-state file exceeds maximum size of {MAX_SPEC_FILE_SIZE_BYTES} bytes: {path}"
        )

    try:
        content = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SpecLoadError(f"Failed to read desired-state file {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise SpecLoadError(f"Desired-state file is not valid UTF-8: {path}: {e}") from e

    try:
        raw_data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise SpecLoadError(f"Invalid YAML in {path}: {e}") from e

    resource_type, desired = parse_desired_state(raw_data, registry, source=str(path))
    logger.info("Loaded desired state for '%s' from %s", resource_type.name, path)
    return resource_type, desired
