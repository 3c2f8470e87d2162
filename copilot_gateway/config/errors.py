from __future__ import annotations

from collections.abc import Iterable


class ConfigError(RuntimeError):
    """Base class for every failure raised while resolving the accounts config."""

    def __init__(self, message: str, *, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigNotFound(ConfigError):
    def __init__(self, path: str, reason: str | None = None) -> None:
        message = (
            f"Accounts config not found at '{path}'. "
            "Provide a config.yaml or set ACCOUNTS_CONFIG."
        )
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, path=path)


class ConfigParseError(ConfigError):
    def __init__(self, path: str, detail: str) -> None:
        super().__init__(
            f"Failed to parse accounts config ({path}): {detail}",
            path=path,
        )
        self.detail = detail


class ConfigValidationError(ConfigError):
    """Raised with every violation found in a structurally parseable document."""

    def __init__(self, path: str, violations: Iterable[str]) -> None:
        self.violations = list(violations)
        if len(self.violations) == 1:
            message = f"Invalid accounts config ({path}): {self.violations[0]}"
        else:
            lines = "\n".join(f"  - {item}" for item in self.violations)
            message = (
                f"Invalid accounts config ({path}): "
                f"{len(self.violations)} problems found\n{lines}"
            )
        super().__init__(message, path=path)


class EnvVarMissing(ConfigError):
    def __init__(
        self,
        account_id: str,
        variable: str,
        *,
        path: str | None = None,
    ) -> None:
        super().__init__(
            f'Account "{account_id}" requires environment variable '
            f'"{variable}" to be set',
            path=path,
        )
        self.account_id = account_id
        self.variable = variable


class UnknownAccountError(ConfigError):
    def __init__(self, account_id: str, available: Iterable[str]) -> None:
        self.account_id = account_id
        self.available = list(available)
        super().__init__(
            f'Account "{account_id}" is not defined in the accounts config. '
            f"Configured accounts: {', '.join(self.available)}",
        )
