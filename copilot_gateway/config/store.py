from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from threading import Lock
from typing import TYPE_CHECKING, Any

import yaml

from copilot_gateway.config.account_fields import (
    CREDENTIAL_FIELD,
    AccountDefinition,
    AccountSet,
)
from copilot_gateway.config.env_refs import substitute_env_references
from copilot_gateway.config.errors import (
    ConfigNotFound,
    ConfigParseError,
    ConfigValidationError,
    EnvVarMissing,
    UnknownAccountError,
)
from copilot_gateway.utils.yaml_utils import parse_yaml_document, read_utf8_text

if TYPE_CHECKING:
    from copilot_gateway.settings import Settings

DEFAULT_CONFIG_FILENAME = "config.yaml"


def resolve_config_path(override: str | None, *, cwd: str | Path | None = None) -> Path:
    base = Path(cwd) if cwd is not None else Path.cwd()
    if override and override.strip():
        candidate = Path(override.strip()).expanduser()
        if not candidate.is_absolute():
            candidate = base / candidate
        return Path(os.path.normpath(candidate))
    return base / DEFAULT_CONFIG_FILENAME


def _is_non_blank_string(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())


def decode_account_entries(document: Any, source_path: str) -> list[tuple[str, str]]:
    """Check the parsed document and return ``(id, raw_credential)`` pairs.

    Every entry is inspected before failing so the error lists all problems
    at once. Credentials are returned exactly as written, env references
    included.
    """
    accounts_value = document.get("accounts") if isinstance(document, dict) else None
    if not isinstance(accounts_value, list) or not accounts_value:
        raise ConfigValidationError(
            source_path,
            ["accounts config must define at least one account"],
        )

    violations: list[str] = []
    entries: list[tuple[str, str]] = []
    seen_ids: dict[str, int] = {}
    for index, entry in enumerate(accounts_value):
        if not isinstance(entry, dict):
            violations.append(f"entry at index {index} must be an object")
            continue

        account_id = entry.get("id")
        credential = entry.get(CREDENTIAL_FIELD)

        if not _is_non_blank_string(account_id):
            violations.append(f'entry at index {index} must include a non-empty "id"')
            if not _is_non_blank_string(credential):
                violations.append(
                    f'entry at index {index} must include a non-empty "{CREDENTIAL_FIELD}"'
                )
            continue

        if account_id in seen_ids:
            violations.append(
                f'account "{account_id}" at index {index} duplicates the id '
                f"declared at index {seen_ids[account_id]}"
            )
        else:
            seen_ids[account_id] = index

        if not _is_non_blank_string(credential):
            violations.append(
                f'account "{account_id}" must include a non-empty "{CREDENTIAL_FIELD}"'
            )
            continue

        entries.append((account_id, credential))

    if violations:
        raise ConfigValidationError(source_path, violations)
    return entries


class AccountsConfigLoader:
    def __init__(
        self,
        config_path: str | Path,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._path = Path(config_path)
        self._config_path = str(config_path)
        self._environ = environ

    def load(self) -> AccountSet:
        document = self._load_document()
        entries = decode_account_entries(document, self._config_path)
        accounts = [
            AccountDefinition(
                id=account_id,
                credential=self._resolve_credential(account_id, raw_credential),
            )
            for account_id, raw_credential in entries
        ]
        return AccountSet.from_accounts(accounts)

    def _load_document(self) -> Any:
        try:
            raw = read_utf8_text(self._path)
        except (OSError, UnicodeDecodeError) as exc:
            raise ConfigNotFound(self._config_path, str(exc)) from exc
        try:
            return parse_yaml_document(raw)
        except yaml.YAMLError as exc:
            raise ConfigParseError(self._config_path, str(exc)) from exc

    def _resolve_credential(self, account_id: str, raw_credential: str) -> str:
        def _missing(variable: str) -> Exception:
            return EnvVarMissing(account_id, variable, path=self._config_path)

        return substitute_env_references(
            raw_credential,
            environ=self._environ,
            on_missing=_missing,
        )


class AccountsConfigStore:
    """Process-wide holder for the resolved :class:`AccountSet`.

    The first successful :meth:`resolve` publishes its result and later calls
    return that same object until :meth:`reset`. Population runs under a lock
    so concurrent first callers share one parse.
    """

    def __init__(
        self,
        override_path: str | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._override_path = override_path
        self._environ = environ
        self._logger = logger
        self._lock = Lock()
        self._cached: AccountSet | None = None

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        logger: logging.Logger | None = None,
    ) -> AccountsConfigStore:
        return cls(settings.accounts_config, logger=logger)

    @property
    def config_path(self) -> Path:
        return resolve_config_path(self._override_path)

    @property
    def is_loaded(self) -> bool:
        return self._cached is not None

    def resolve(self) -> AccountSet:
        cached = self._cached
        if cached is not None:
            return cached

        with self._lock:
            if self._cached is not None:
                return self._cached
            config_path = self.config_path
            try:
                account_set = AccountsConfigLoader(
                    config_path, environ=self._environ
                ).load()
            except ConfigNotFound:
                if self._logger is not None:
                    self._logger.error(
                        "accounts_config_not_found path=%s hint=%s",
                        config_path,
                        "provide a config.yaml or set ACCOUNTS_CONFIG",
                    )
                raise
            self._cached = account_set
            if self._logger is not None:
                self._logger.info(
                    "accounts_config_loaded path=%s accounts=%d default_account=%s",
                    config_path,
                    len(account_set.accounts),
                    account_set.default_account_id,
                )
            return account_set

    def reset(self) -> None:
        with self._lock:
            self._cached = None


def select_account(
    account_set: AccountSet,
    account_id: str | None = None,
) -> AccountDefinition:
    if account_id is None or not account_id.strip():
        return account_set.default_account
    account = account_set.get(account_id.strip())
    if account is None:
        raise UnknownAccountError(account_id.strip(), account_set.account_ids)
    return account
