"""
Loads and validates the application configuration from environment variables.
"""

import logging
import os
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from qbt_tracker_updater.exceptions import ConfigurationError
from qbt_tracker_updater.models.config import (
    ENVIRONMENT_VARIABLES,
    REQUIRED_VARIABLES,
    UpdaterConfig,
)

log = logging.getLogger(__name__)


class ConfigManager:
    """Handles all operations related to the environment-sourced configuration."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self._environ = os.environ if environ is None else environ

    def load_config(self, cli_options: dict[str, Any] | None = None) -> UpdaterConfig:
        """
        Reads the environment, applies CLI overrides, and validates the result.

        Args:
            cli_options: A dictionary of options provided via the command line,
                keyed by model field name.

        Returns:
            A validated UpdaterConfig object.

        Raises:
            ConfigurationError: If a required value is missing or validation fails.
        """
        config_values = self._get_config_as_dict()

        if cli_options:
            config_values.update(
                {key: value for key, value in cli_options.items() if value is not None}
            )

        missing = [
            variable
            for variable in REQUIRED_VARIABLES
            if not config_values.get(ENVIRONMENT_VARIABLES[variable])
        ]
        if missing:
            raise ConfigurationError(
                "Invalid configuration: missing required environment variable(s): "
                + ", ".join(missing)
            )

        try:
            config = UpdaterConfig(**config_values)
        except ValidationError as e:
            raise ConfigurationError(f"Configuration validation failed:\n{e}") from e

        log.debug(f"Configuration loaded for endpoint {config.endpoint}")
        return config

    def _get_config_as_dict(self) -> dict[str, Any]:
        """Collects every known variable that is set and non-empty."""
        values: dict[str, Any] = {}
        for variable, field_name in ENVIRONMENT_VARIABLES.items():
            raw = self._environ.get(variable, "")
            if raw.strip():
                values[field_name] = raw
        return values
