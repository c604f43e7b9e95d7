"""
Configuration loader for reqflow.

Loads reqflow.yaml. Every key is optional; a missing or unreadable file
yields the defaults below. Collaborator URLs can be overridden from the
environment so the same config file works across deployments.

Example reqflow.yaml:

    persistence:
      base_url: https://requests.internal/api
      timeout_seconds: 10
    generation:
      base_url: http://localhost:3001/api
      max_tokens: 4000
    impact:
      strict_sum: true
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

from reqflow.lib.models import Complexity, Priority

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "reqflow.yaml"

ENV_CONFIG_PATH = "REQFLOW_CONFIG"
ENV_PERSISTENCE_URL = "REQFLOW_PERSISTENCE_URL"
ENV_GENERATION_URL = "REQFLOW_GENERATION_URL"


@dataclass
class PersistenceConfig:
    base_url: str = "http://localhost:3001/api"
    timeout_seconds: float = 10.0


@dataclass
class GenerationConfig:
    base_url: str = "http://localhost:3001/api"
    model: str = "claude-sonnet-4-5-20250929"
    max_tokens: int = 4000
    timeout_seconds: float = 120.0  # document generation streams for a while
    min_content_length: int = 2


@dataclass
class ImpactConfig:
    # Generated scores are probabilistic; by default a breakdown that doesn't
    # add up to the total is only logged. strict_sum rejects it instead.
    strict_sum: bool = False


@dataclass
class RoutingConfig:
    """Fallback routing used when the generated routing can't be parsed."""
    default_owner: str = "Unassigned"
    default_priority: Priority = Priority.MEDIUM
    default_complexity: Complexity = Complexity.MEDIUM


@dataclass
class EngineConfig:
    persistence: PersistenceConfig = field(default_factory=PersistenceConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    impact: ImpactConfig = field(default_factory=ImpactConfig)
    routing: RoutingConfig = field(default_factory=RoutingConfig)


def _section(data: dict, name: str) -> dict:
    value = data.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' must be a mapping, got {type(value).__name__}")
    return value


def _build_config(data: dict) -> EngineConfig:
    persistence = _section(data, "persistence")
    generation = _section(data, "generation")
    impact = _section(data, "impact")
    routing = _section(data, "routing")

    defaults = EngineConfig()
    return EngineConfig(
        persistence=PersistenceConfig(
            base_url=str(persistence.get("base_url", defaults.persistence.base_url)),
            timeout_seconds=float(persistence.get("timeout_seconds", defaults.persistence.timeout_seconds)),
        ),
        generation=GenerationConfig(
            base_url=str(generation.get("base_url", defaults.generation.base_url)),
            model=str(generation.get("model", defaults.generation.model)),
            max_tokens=int(generation.get("max_tokens", defaults.generation.max_tokens)),
            timeout_seconds=float(generation.get("timeout_seconds", defaults.generation.timeout_seconds)),
            min_content_length=int(generation.get("min_content_length", defaults.generation.min_content_length)),
        ),
        impact=ImpactConfig(
            strict_sum=bool(impact.get("strict_sum", defaults.impact.strict_sum)),
        ),
        routing=RoutingConfig(
            default_owner=str(routing.get("default_owner", defaults.routing.default_owner)),
            default_priority=Priority(routing.get("default_priority", defaults.routing.default_priority.value)),
            default_complexity=Complexity(routing.get("default_complexity", defaults.routing.default_complexity.value)),
        ),
    )


def _apply_env_overrides(config: EngineConfig) -> EngineConfig:
    persistence_url = os.environ.get(ENV_PERSISTENCE_URL, "").strip()
    if persistence_url:
        config.persistence.base_url = persistence_url
    generation_url = os.environ.get(ENV_GENERATION_URL, "").strip()
    if generation_url:
        config.generation.base_url = generation_url
    return config


def load_config(path: Optional[Path] = None) -> EngineConfig:
    """Load reqflow.yaml and return EngineConfig.

    Lookup order: explicit path, $REQFLOW_CONFIG, ./reqflow.yaml.
    If the file doesn't exist or can't be parsed, returns defaults.
    Environment URL overrides are applied last in every case.
    """
    if path is None:
        env_path = os.environ.get(ENV_CONFIG_PATH, "").strip()
        path = Path(env_path) if env_path else Path.cwd() / CONFIG_FILENAME

    if not path.exists():
        logger.debug(f"No config at {path}, using defaults")
        return _apply_env_overrides(EngineConfig())

    try:
        data = yaml.safe_load(path.read_text()) or {}
        if not isinstance(data, dict):
            raise ValueError("top level must be a mapping")
        config = _build_config(data)
    except (yaml.YAMLError, ValueError, TypeError) as e:
        logger.warning(f"Failed to parse {path}: {e}")
        config = EngineConfig()

    return _apply_env_overrides(config)
