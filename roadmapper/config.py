"""Configuration management for Roadmapper."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from roadmapper.ai.base import SamplingParameters
from roadmapper.ai.transport import DEFAULT_BASE_URL, DEFAULT_MODEL, DEFAULT_TIMEOUT

CONFIG_FILENAME = "roadmapper.yaml"


class ConfigError(Exception):
    """Raised when a config file cannot be read or does not validate."""


class ApiConfig(BaseModel):
    """Where and how generation requests are sent.

    transport: "http" posts raw REST calls with httpx,
               "genai" goes through the google-genai SDK.
    """
    base_url: str = DEFAULT_BASE_URL
    model: str = DEFAULT_MODEL
    timeout: float = DEFAULT_TIMEOUT
    transport: Literal["http", "genai"] = "http"


class SamplingConfig(BaseModel):
    """Sampling parameters for one kind of request."""
    temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(default=4096, gt=0)
    top_p: float = Field(default=0.9, gt=0.0, le=1.0)

    def to_parameters(self) -> SamplingParameters:
        return SamplingParameters(
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            top_p=self.top_p,
        )


def _default_sampling() -> dict[str, SamplingConfig]:
    return {
        "analysis": SamplingConfig(temperature=0.7, max_output_tokens=3000),
        "roadmap": SamplingConfig(temperature=0.6, max_output_tokens=2500),
        "tasks": SamplingConfig(temperature=0.5, max_output_tokens=2000),
    }


class RetryConfig(BaseModel):
    """Retries for rate-limited / unreachable calls. max_attempts=1 disables them."""
    max_attempts: int = Field(default=3, ge=1)
    delay: float = Field(default=1.0, ge=0.0)
    backoff: float = Field(default=2.0, ge=1.0)


class CredentialsConfig(BaseModel):
    path: str = "~/.config/roadmapper/credentials.yaml"
    use_env: bool = True  # fall back to GEMINI_API_KEY / GOOGLE_API_KEY


class GlobalConfig(BaseModel):
    max_parallel: int = Field(default=3, ge=1)  # concurrent per-phase task breakdowns


class RoadmapperConfig(BaseModel):
    """Root configuration model."""
    global_: GlobalConfig = Field(default_factory=GlobalConfig, alias="global")
    api: ApiConfig = Field(default_factory=ApiConfig)
    sampling: dict[str, SamplingConfig] = Field(default_factory=_default_sampling)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    credentials: CredentialsConfig = Field(default_factory=CredentialsConfig)

    model_config = {"populate_by_name": True}

    def sampling_for(self, operation: str) -> SamplingParameters:
        cfg = self.sampling.get(operation)
        return cfg.to_parameters() if cfg else SamplingParameters()


def find_config_file(start_dir: str | Path | None = None) -> Path | None:
    """Find roadmapper.yaml by walking up from start_dir."""
    if start_dir is None:
        start_dir = Path.cwd()
    else:
        start_dir = Path(start_dir)

    current = start_dir.resolve()
    while True:
        candidate = current / CONFIG_FILENAME
        if candidate.exists():
            return candidate
        parent = current.parent
        if parent == current:
            break
        current = parent

    # Check home directory
    home_config = Path.home() / ".config" / "roadmapper" / CONFIG_FILENAME
    if home_config.exists():
        return home_config

    return None


def load_config(config_path: str | Path | None = None) -> RoadmapperConfig:
    """Load configuration from roadmapper.yaml.

    Priority: specified path > walking up from cwd > ~/.config/roadmapper/roadmapper.yaml > defaults
    """
    if config_path:
        path = Path(config_path)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
    else:
        path = find_config_file()

    raw: dict = {}
    if path:
        try:
            with open(path) as f:
                raw = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read {path}: {e}") from e
        if not isinstance(raw, dict):
            raise ConfigError(f"{path} must contain a mapping at the top level")

    # Merge with per-operation defaults for anything the file leaves out
    sampling_raw = raw.get("sampling") or {}
    if not isinstance(sampling_raw, dict):
        raise ConfigError(f"'sampling' in {path} must be a mapping of operation -> parameters")
    for operation, defaults in _default_sampling().items():
        override = sampling_raw.get(operation) or {}
        if not isinstance(override, dict):
            raise ConfigError(f"'sampling.{operation}' in {path} must be a mapping")
        merged = defaults.model_dump()
        merged.update(override)
        sampling_raw[operation] = merged
    raw["sampling"] = sampling_raw

    try:
        return RoadmapperConfig.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e
