"""
Configuration
=============
Loads environment variables from .env file using python-dotenv, then exposes
typed pydantic sections the engine is driven by.

Environment Variables:
    GREENLIT_LEDGER_PATH      — Signature ledger JSON location (default: data/signatures.json)
    GREENLIT_LEDGER_TTL_DAYS  — Days before a ledger record expires (default: 30)
    GREENLIT_MAX_ATTEMPTS     — Max fix attempts per signature (default: 2)
    GREENLIT_BLAME_DEPTH      — Lines searched around the evidence line for blame (default: 1)
    GREENLIT_FALLBACK_OWNER   — Owner when every resolver tier fails (default: unassigned)
    GREENLIT_DEFAULT_COMMAND  — Failed command when none can be inferred (default: npm test)
    GREENLIT_GIT_TIMEOUT      — Seconds allowed for a single git lookup (default: 5)
    GREENLIT_REPO_ROOT        — Repository checkout used for CODEOWNERS and git (default: .)
    GREENLIT_CONFIG_FILE      — Project YAML config file (default: greenlit.yml)
    LOG_LEVEL                 — Root log level (default: INFO)
    LOG_DIR                   — Directory for dated log files; empty disables (default: logs)

Project Config File:
    The routing lists, ledger, and owner-routing sections can also come from
    a YAML file (load_config). Missing file → environment defaults.
    Sections and keys the engine does not know are ignored, so one file can
    be shared with other CI tooling.

    routing:
      report_only: [secrets, permissions, infra_outage, dependency_registry]
      max_attempts_per_signature: 3
    owner_routing:
      team_map:
        "src/payments/": "@acme/payments"
"""
import os
import logging
from typing import Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from greenlit.core.constants import FAILURE_CLASSES, FAILURE_TYPES

load_dotenv()

logger = logging.getLogger(__name__)

LEDGER_PATH = os.getenv("GREENLIT_LEDGER_PATH", "data/signatures.json")
LEDGER_TTL_DAYS = int(os.getenv("GREENLIT_LEDGER_TTL_DAYS", 30))
MAX_ATTEMPTS_PER_SIGNATURE = int(os.getenv("GREENLIT_MAX_ATTEMPTS", 2))
BLAME_DEPTH = int(os.getenv("GREENLIT_BLAME_DEPTH", 1))
FALLBACK_OWNER = os.getenv("GREENLIT_FALLBACK_OWNER", "unassigned")
DEFAULT_COMMAND = os.getenv("GREENLIT_DEFAULT_COMMAND", "npm test")
GIT_TIMEOUT_SECONDS = float(os.getenv("GREENLIT_GIT_TIMEOUT", 5))
REPO_ROOT = os.getenv("GREENLIT_REPO_ROOT", ".")
CONFIG_FILE = os.getenv("GREENLIT_CONFIG_FILE", "greenlit.yml")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_DIR = os.getenv("LOG_DIR", "logs")

DEFAULT_CODEOWNERS_PATHS = ["CODEOWNERS", ".github/CODEOWNERS"]


class RoutingConfig(BaseModel):
    report_only: List[str] = Field(
        default_factory=lambda: ["secrets", "permissions", "infra_outage", "dependency_registry"]
    )
    flake_workflow: List[str] = Field(default_factory=lambda: ["flaky"])
    fix_attempt: List[str] = Field(default_factory=lambda: ["test", "lint", "typecheck", "build"])
    max_attempts_per_signature: int = MAX_ATTEMPTS_PER_SIGNATURE

    @field_validator("report_only", "flake_workflow")
    @classmethod
    def validate_failure_classes(cls, v: List[str]) -> List[str]:
        unknown = [c for c in v if c not in FAILURE_CLASSES]
        if unknown:
            raise ValueError(f"unknown failure class(es): {', '.join(unknown)}")
        return v

    @field_validator("fix_attempt")
    @classmethod
    def validate_failure_types(cls, v: List[str]) -> List[str]:
        unknown = [t for t in v if t not in FAILURE_TYPES]
        if unknown:
            raise ValueError(f"unknown failure type(s): {', '.join(unknown)}")
        return v


class SignatureLedgerConfig(BaseModel):
    path: str = LEDGER_PATH
    ttl_days: int = LEDGER_TTL_DAYS


class OwnerRoutingConfig(BaseModel):
    codeowners_paths: List[str] = Field(default_factory=lambda: list(DEFAULT_CODEOWNERS_PATHS))
    blame_depth: int = BLAME_DEPTH
    # Directory prefix → owner, longest matching prefix wins
    team_map: Dict[str, str] = Field(default_factory=dict)
    fallback_owner: str = FALLBACK_OWNER


class EngineConfig(BaseModel):
    routing: RoutingConfig = Field(default_factory=RoutingConfig)
    signature_ledger: SignatureLedgerConfig = Field(default_factory=SignatureLedgerConfig)
    owner_routing: OwnerRoutingConfig = Field(default_factory=OwnerRoutingConfig)
    default_command: str = DEFAULT_COMMAND
    git_timeout: float = GIT_TIMEOUT_SECONDS
    repo_root: str = REPO_ROOT


def get_default_config() -> EngineConfig:
    """Return a fresh configuration built from environment defaults."""
    return EngineConfig()


class ConfigError(ValueError):
    """The project config file exists but is not valid YAML or not a valid config."""


def load_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Load the engine configuration from a project YAML file.

    Parameters
    ----------
    config_path : str | None
        YAML file location; defaults to GREENLIT_CONFIG_FILE.

    Returns
    -------
    EngineConfig
        File values layered over the environment defaults. A missing file
        yields the defaults unchanged.

    Raises
    ------
    ConfigError
        If the file cannot be read, is not valid YAML, or fails validation.
    """
    path = config_path or CONFIG_FILE
    if not os.path.isfile(path):
        logger.info("Config file not found at %s, using defaults", path)
        return get_default_config()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Cannot read config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a mapping")

    try:
        config = EngineConfig.model_validate(data)
    except ValidationError as e:
        for err in e.errors():
            logger.error("  - %s: %s", ".".join(str(p) for p in err["loc"]), err["msg"])
        raise ConfigError(f"Invalid configuration in {path}") from e

    logger.info("Loaded configuration from %s", path)
    return config
