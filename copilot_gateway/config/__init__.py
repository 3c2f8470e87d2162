from __future__ import annotations

from copilot_gateway.config.account_fields import (
    CREDENTIAL_FIELD,
    AccountDefinition,
    AccountSet,
)
from copilot_gateway.config.errors import (
    ConfigError,
    ConfigNotFound,
    ConfigParseError,
    ConfigValidationError,
    EnvVarMissing,
    UnknownAccountError,
)
from copilot_gateway.config.store import (
    DEFAULT_CONFIG_FILENAME,
    AccountsConfigLoader,
    AccountsConfigStore,
    resolve_config_path,
    select_account,
)

__all__ = [
    "CREDENTIAL_FIELD",
    "DEFAULT_CONFIG_FILENAME",
    "AccountDefinition",
    "AccountSet",
    "AccountsConfigLoader",
    "AccountsConfigStore",
    "ConfigError",
    "ConfigNotFound",
    "ConfigParseError",
    "ConfigValidationError",
    "EnvVarMissing",
    "UnknownAccountError",
    "resolve_config_path",
    "select_account",
]
