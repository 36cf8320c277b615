"""Configuration file handling for lostfound.

Handles loading and validation of the YAML file that seeds the approver
directory and overrides workflow tunables.

Example::

    routing:
      allow_scope_fallback: false
    sla:
      approaching_threshold_hours: 2
    approvers:
      - id: coord-1
        name: Campus Coordinator
        role: campus_coordinator
        organization_id: ${CAMPUS_ORG_ID}
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from lostfound.core.routing.directory import Approver
from lostfound.core.workflow.states import Role


@dataclass
class ApproverConfig:
    """Configuration for a single approver identity."""

    id: str
    name: str
    role: str
    organization_id: Optional[str] = None
    enterprise_id: Optional[str] = None
    email: Optional[str] = None
    active: bool = True


@dataclass
class RoutingConfig:
    """Configuration for approver routing."""

    allow_scope_fallback: bool = False


@dataclass
class WorkflowConfig:
    """Top-level configuration file contents."""

    routing: RoutingConfig = field(default_factory=RoutingConfig)
    approvers: List[ApproverConfig] = field(default_factory=list)
    sla_approaching_threshold_hours: Optional[float] = None


def parse_approver_config(approver_dict: Dict[str, Any]) -> ApproverConfig:
    """Parse an approver configuration dictionary.

    Raises:
        ValueError: If the id, name or role is missing, or the role is unknown
    """
    for key in ("id", "name", "role"):
        if not approver_dict.get(key):
            raise ValueError(f"Approver entry is missing '{key}': {approver_dict}")

    role = str(approver_dict["role"]).lower()
    if role not in {r.value for r in Role}:
        raise ValueError(f"Unknown approver role: {approver_dict['role']}")

    return ApproverConfig(
        id=str(approver_dict["id"]),
        name=str(approver_dict["name"]),
        role=role,
        organization_id=approver_dict.get("organization_id"),
        enterprise_id=approver_dict.get("enterprise_id"),
        email=approver_dict.get("email"),
        active=approver_dict.get("active", True),
    )


def parse_routing_config(routing_dict: Dict[str, Any]) -> RoutingConfig:
    return RoutingConfig(
        allow_scope_fallback=bool(routing_dict.get("allow_scope_fallback", False)),
    )


def parse_config(config_dict: Dict[str, Any]) -> WorkflowConfig:
    """Parse the full configuration dictionary."""
    routing = RoutingConfig()
    if "routing" in config_dict:
        routing = parse_routing_config(config_dict["routing"] or {})

    approvers = [parse_approver_config(a) for a in config_dict.get("approvers") or []]

    threshold = (config_dict.get("sla") or {}).get("approaching_threshold_hours")

    return WorkflowConfig(
        routing=routing,
        approvers=approvers,
        sla_approaching_threshold_hours=float(threshold) if threshold is not None else None,
    )


def to_approver(config: ApproverConfig) -> Approver:
    """Build a directory identity from its configuration entry."""
    return Approver(
        approver_id=config.id,
        name=config.name,
        role=Role(config.role),
        organization_id=config.organization_id,
        enterprise_id=config.enterprise_id,
        email=config.email,
        active=config.active,
    )


def load_config(config_path: str = "lostfound.yaml") -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary with environment variables expanded

    Raises:
        FileNotFoundError: If config file doesn't exist
        TypeError: If the document root is not a mapping
        yaml.YAMLError: If config file is invalid YAML
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(config_path: str = "lostfound.yaml") -> WorkflowConfig:
    """Load and parse configuration into typed dataclasses.

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If an approver entry is invalid
        yaml.YAMLError: If config file is invalid YAML
    """
    return parse_config(load_config(config_path))
