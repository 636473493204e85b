"""Configuration loading for mockgen.

Configuration comes from a YAML file, with defaults for missing sections
and environment variable overrides for secrets and host scoping.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from mockgen.models import ConfigError, NormalizeOptions
from mockgen.utils.urls import is_valid_url

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.yaml")

# Environment variables
API_KEY_ENV_VAR = "AI_API_KEY"
ALLOWED_HOSTS_ENV_VAR = "MOCKGEN_ALLOWED_HOSTS"
HEADLESS_ENV_VAR = "MOCKGEN_HEADLESS"
DEFAULT_URL_ENV_VAR = "MOCKGEN_DEFAULT_URL"

# Bundled prompt template, used when ai.prompt_template_path is not set
BUNDLED_PROMPT_TEMPLATE = Path(__file__).parent / "prompts" / "collection_generator.txt"


class AiConfig(BaseModel):
    """AI synthesizer settings.

    Attributes:
        api_key: Gemini API key (overridable via AI_API_KEY)
        model_name: Gemini model name
        prompt_template_path: Prompt template file (None uses the bundled template)
    """

    api_key: str = ""
    model_name: str = "gemini-1.5-pro-latest"
    prompt_template_path: Path | None = None

    @property
    def template_path(self) -> Path:
        """Resolved prompt template path."""
        return self.prompt_template_path or BUNDLED_PROMPT_TEMPLATE


class OutputConfig(BaseModel):
    """Output settings."""

    default_filename: str = "postman_collection.json"


class FilterConfig(BaseModel):
    """Traffic filter settings.

    Attributes:
        allowed_hosts: Hosts to capture (subdomains included); empty captures all hosts
    """

    allowed_hosts: list[str] = Field(default_factory=list)

    @field_validator("allowed_hosts")
    @classmethod
    def _check_hosts(cls, hosts: list[str]) -> list[str]:
        for host in hosts:
            if not host.strip():
                raise ValueError(f"allowed_hosts entries must be non-empty strings, got {host!r}")
        return [host.strip() for host in hosts]


class BrowserSettings(BaseModel):
    """Browser launch and timeout settings.

    Attributes:
        headless: Run Chromium without a window (interactive capture needs False)
        navigation_timeout_ms: Timeout for the initial navigation
        response_timeout_ms: Timeout for reading a single response body
        viewport_width: Page viewport width
        viewport_height: Page viewport height
    """

    headless: bool = False
    navigation_timeout_ms: int = Field(default=60000, gt=0)
    response_timeout_ms: int = Field(default=10000, gt=0)
    viewport_width: int = 1280
    viewport_height: int = 720


class AppConfig(BaseModel):
    """Complete application configuration."""

    ai: AiConfig = Field(default_factory=AiConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    processing: NormalizeOptions = Field(default_factory=NormalizeOptions)
    browser: BrowserSettings = Field(default_factory=BrowserSettings)

    def require_api_key(self) -> str:
        """Return the API key.

        Raises:
            ConfigError: If no API key is configured
        """
        if not self.ai.api_key:
            raise ConfigError(
                "MISSING_API_KEY",
                "Gemini API key is required",
                f"Set ai.api_key in config.yaml or the {API_KEY_ENV_VAR} environment variable",
            )
        return self.ai.api_key


def _load_yaml_file(path: Path) -> dict[str, object]:
    if not path.exists():
        raise ConfigError(
            "FILE_NOT_FOUND",
            f"Configuration file not found: {path}",
            "Create one with: mockgen init-config",
        )

    content = path.read_text(encoding="utf-8")
    if not content.strip():
        raise ConfigError(
            "EMPTY_FILE",
            f"Configuration file is empty: {path}",
            "The configuration file exists but contains no content.",
        )

    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            "YAML_PARSE_ERROR",
            f"Failed to parse YAML configuration file: {path}",
            str(e),
        ) from e

    if not isinstance(data, dict):
        raise ConfigError(
            "INVALID_YAML",
            f"Invalid YAML content in configuration file: {path}",
            "The YAML file must contain a mapping at the top level.",
        )
    return data


def _apply_environment(data: dict[str, object]) -> dict[str, object]:
    """Overlay environment variables onto raw configuration data."""
    result = dict(data)

    api_key = os.environ.get(API_KEY_ENV_VAR, "").strip()
    if api_key:
        ai = dict(result.get("ai") or {})  # type: ignore[call-overload]
        ai["api_key"] = api_key
        result["ai"] = ai

    hosts_env = os.environ.get(ALLOWED_HOSTS_ENV_VAR, "")
    hosts = [host.strip() for host in hosts_env.split(",") if host.strip()]
    if hosts:
        filter_section = dict(result.get("filter") or {})  # type: ignore[call-overload]
        filter_section["allowed_hosts"] = hosts
        result["filter"] = filter_section

    headless = os.environ.get(HEADLESS_ENV_VAR, "").strip().lower()
    if headless in ("true", "false"):
        browser = dict(result.get("browser") or {})  # type: ignore[call-overload]
        browser["headless"] = headless == "true"
        result["browser"] = browser

    return result


def load_config(
    config_path: Path | str = DEFAULT_CONFIG_PATH,
    use_env_vars: bool = True,
    apply_defaults: bool = True,
) -> AppConfig:
    """Load, overlay and validate the application configuration.

    Args:
        config_path: Path to the YAML configuration file
        use_env_vars: Apply environment variable overrides
        apply_defaults: Fall back to defaults when the file is missing

    Returns:
        Validated configuration

    Raises:
        ConfigError: If the file cannot be read or the configuration is invalid
    """
    path = Path(config_path)

    try:
        data = _load_yaml_file(path)
    except ConfigError as e:
        if apply_defaults and e.code == "FILE_NOT_FOUND":
            logger.warning("Configuration file not found at %s, using defaults", path)
            data = {}
        else:
            raise

    if use_env_vars:
        data = _apply_environment(data)

    try:
        config = AppConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            "INVALID_CONFIG_STRUCTURE",
            "Configuration object has invalid structure",
            str(e),
        ) from e

    template = config.ai.prompt_template_path
    if template is not None and not template.exists():
        raise ConfigError(
            "PROMPT_TEMPLATE_NOT_FOUND",
            f"Prompt template file not found: {template}",
            f"Please ensure the prompt template file exists at: {template.resolve()}",
        )

    return config


def get_default_url() -> str | None:
    """Return the capture URL from MOCKGEN_DEFAULT_URL, if set.

    Raises:
        ConfigError: If the variable is set but not a valid URL
    """
    url = os.environ.get(DEFAULT_URL_ENV_VAR, "").strip()
    if not url:
        return None
    if not is_valid_url(url):
        raise ConfigError(
            "INVALID_DEFAULT_URL",
            f"Invalid default URL format: {url}",
            f"Please provide a valid HTTP or HTTPS URL in {DEFAULT_URL_ENV_VAR}",
        )
    return url


SAMPLE_CONFIG = """\
# mockgen configuration file

ai:
  # Google AI Studio API key for Gemini.
  # You can also set this via the AI_API_KEY environment variable.
  api_key: "YOUR_GEMINI_API_KEY"

  # Gemini model used for collection generation
  model_name: "gemini-1.5-pro-latest"

  # Prompt template file; leave unset to use the bundled template.
  # prompt_template_path: "./prompts/collection_generator.txt"

output:
  # Default filename for generated Postman collections
  default_filename: "postman_collection.json"

filter:
  # Hosts whose traffic is captured (subdomains included).
  # If empty, all hosts are captured.
  # Can be overridden with MOCKGEN_ALLOWED_HOSTS=api.example.com,cdn.example.com
  allowed_hosts:
    - "api.example.com"

processing:
  merge_duplicates: true
  prioritize_block_apis: true
  # Raw exchanges considered before grouping (0 = unlimited)
  max_endpoints: 50

browser:
  headless: false
  navigation_timeout_ms: 60000
  response_timeout_ms: 10000
"""


def create_sample_config(config_path: Path | str = DEFAULT_CONFIG_PATH) -> Path:
    """Write a commented sample configuration file.

    Args:
        config_path: Where to write the file

    Returns:
        Path of the written file

    Raises:
        ConfigError: If the file cannot be written
    """
    path = Path(config_path)
    try:
        path.write_text(SAMPLE_CONFIG, encoding="utf-8")
    except OSError as e:
        raise ConfigError(
            "SAMPLE_CONFIG_CREATE_ERROR",
            f"Failed to create sample configuration file at: {path}",
            str(e),
        ) from e
    return path


def format_config_for_display(config: AppConfig, hide_secrets: bool = True) -> str:
    """Format configuration as JSON for display.

    Args:
        config: Configuration to format
        hide_secrets: Mask the API key down to its first 8 characters

    Returns:
        Indented JSON string
    """
    data = config.model_dump(mode="json")
    api_key = data["ai"]["api_key"]
    if hide_secrets and api_key:
        data["ai"]["api_key"] = api_key[:8] + "..."
    return json.dumps(data, indent=2, ensure_ascii=False)
