from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

import pytest

from copilot_gateway.config import (
    AccountDefinition,
    AccountsConfigLoader,
    AccountsConfigStore,
    ConfigNotFound,
    ConfigParseError,
    ConfigValidationError,
    EnvVarMissing,
    UnknownAccountError,
    resolve_config_path,
    select_account,
)
from tests.yaml_test_utils import write_accounts_config

TWO_ACCOUNTS = """
accounts:
  - id: primary
    github_token: token-one
  - id: backup
    github_token: token-two
"""


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: Any) -> None:
    monkeypatch.delenv("ACCOUNTS_CONFIG", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN_EXAMPLE", raising=False)
    monkeypatch.delenv("GITHUB_TOKEN_MISSING", raising=False)


def test_parses_accounts_and_uses_first_entry_as_default(tmp_path: Path) -> None:
    config_path = write_accounts_config(tmp_path, TWO_ACCOUNTS)

    account_set = AccountsConfigStore(str(config_path)).resolve()

    assert list(account_set.accounts) == [
        AccountDefinition(id="primary", credential="token-one"),
        AccountDefinition(id="backup", credential="token-two"),
    ]
    assert account_set.default_account_id == "primary"
    assert account_set.default_account.id == "primary"
    assert account_set.account_ids == ["primary", "backup"]


def test_substitutes_braced_environment_reference(tmp_path: Path, monkeypatch: Any) -> None:
    config_path = write_accounts_config(
        tmp_path,
        """
accounts:
  - id: env-account
    github_token: ${GITHUB_TOKEN_EXAMPLE}
""",
    )
    monkeypatch.setenv("GITHUB_TOKEN_EXAMPLE", "env-token")

    account_set = AccountsConfigStore(str(config_path)).resolve()

    assert account_set.accounts[0].credential == "env-token"


def test_substitutes_bare_and_repeated_references(tmp_path: Path, monkeypatch: Any) -> None:
    config_path = write_accounts_config(
        tmp_path,
        """
accounts:
  - id: mixed
    github_token: ghu_$TOKEN_PREFIX-${TOKEN_SUFFIX}.$TOKEN_PREFIX
""",
    )
    monkeypatch.setenv("TOKEN_PREFIX", "abc")
    monkeypatch.setenv("TOKEN_SUFFIX", "xyz")

    account_set = AccountsConfigStore(str(config_path)).resolve()

    assert account_set.accounts[0].credential == "ghu_abc-xyz.abc"


def test_raises_when_referenced_environment_variable_is_missing(tmp_path: Path) -> None:
    config_path = write_accounts_config(
        tmp_path,
        """
accounts:
  - id: missing-env
    github_token: ${GITHUB_TOKEN_MISSING}
""",
    )

    with pytest.raises(EnvVarMissing, match="GITHUB_TOKEN_MISSING") as exc_info:
        AccountsConfigStore(str(config_path)).resolve()

    assert exc_info.value.account_id == "missing-env"
    assert exc_info.value.variable == "GITHUB_TOKEN_MISSING"
    assert "missing-env" in str(exc_info.value)


def test_empty_environment_variable_counts_as_missing(tmp_path: Path, monkeypatch: Any) -> None:
    config_path = write_accounts_config(
        tmp_path,
        """
accounts:
  - id: first
    github_token: literal
  - id: empty-env
    github_token: $GITHUB_TOKEN_EXAMPLE
""",
    )
    monkeypatch.setenv("GITHUB_TOKEN_EXAMPLE", "")
    store = AccountsConfigStore(str(config_path))

    with pytest.raises(EnvVarMissing) as exc_info:
        store.resolve()

    assert exc_info.value.account_id == "empty-env"
    assert store.is_loaded is False


def test_resolve_returns_cached_set_until_reset(tmp_path: Path, monkeypatch: Any) -> None:
    config_path = write_accounts_config(
        tmp_path,
        """
accounts:
  - id: primary
    github_token: ${GITHUB_TOKEN_EXAMPLE}
""",
    )
    monkeypatch.setenv("GITHUB_TOKEN_EXAMPLE", "first-token")
    store = AccountsConfigStore(str(config_path))

    first = store.resolve()
    write_accounts_config(tmp_path, TWO_ACCOUNTS)
    monkeypatch.setenv("GITHUB_TOKEN_EXAMPLE", "second-token")

    assert store.resolve() is first
    assert first.accounts[0].credential == "first-token"

    store.reset()
    reloaded = store.resolve()

    assert reloaded is not first
    assert reloaded.account_ids == ["primary", "backup"]


def test_concurrent_first_resolution_parses_once(
    tmp_path: Path, monkeypatch: Any
) -> None:
    config_path = write_accounts_config(tmp_path, TWO_ACCOUNTS)
    original_load = AccountsConfigLoader.load
    calls: list[int] = []
    calls_lock = threading.Lock()

    def slow_load(self: AccountsConfigLoader) -> Any:
        with calls_lock:
            calls.append(1)
        time.sleep(0.05)
        return original_load(self)

    monkeypatch.setattr(AccountsConfigLoader, "load", slow_load)
    store = AccountsConfigStore(str(config_path))

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: store.resolve(), range(8)))

    assert len(calls) == 1
    assert all(result is results[0] for result in results)


def test_missing_file_reports_attempted_path(tmp_path: Path) -> None:
    missing = tmp_path / "nope" / "config.yaml"

    with pytest.raises(ConfigNotFound) as exc_info:
        AccountsConfigStore(str(missing)).resolve()

    assert str(missing) in str(exc_info.value)
    assert exc_info.value.path == str(missing)


def test_malformed_yaml_raises_parse_error(tmp_path: Path) -> None:
    config_path = write_accounts_config(tmp_path, "accounts: [\n  - id: broken\n")

    with pytest.raises(ConfigParseError) as exc_info:
        AccountsConfigStore(str(config_path)).resolve()

    assert str(config_path) in str(exc_info.value)
    assert exc_info.value.detail


@pytest.mark.parametrize(
    "contents",
    [
        "",
        "accounts: []\n",
        "accounts: primary\n",
        "- id: primary\n  github_token: token\n",
        "other: value\n",
    ],
)
def test_requires_at_least_one_account(tmp_path: Path, contents: str) -> None:
    config_path = write_accounts_config(tmp_path, contents)

    with pytest.raises(ConfigValidationError, match="at least one account"):
        AccountsConfigStore(str(config_path)).resolve()


def test_validation_reports_every_invalid_entry(tmp_path: Path) -> None:
    config_path = write_accounts_config(
        tmp_path,
        """
accounts:
  - just-a-string
  - id: "   "
    github_token: token
  - id: no-token
  - id: blank-token
    github_token: "  "
  - id: ok
    github_token: token
  - id: ok
    github_token: other
""",
    )

    with pytest.raises(ConfigValidationError) as exc_info:
        AccountsConfigStore(str(config_path)).resolve()

    violations = exc_info.value.violations
    assert violations == [
        "entry at index 0 must be an object",
        'entry at index 1 must include a non-empty "id"',
        'account "no-token" must include a non-empty "github_token"',
        'account "blank-token" must include a non-empty "github_token"',
        'account "ok" at index 5 duplicates the id declared at index 4',
    ]
    assert "5 problems found" in str(exc_info.value)


def test_validation_errors_win_over_missing_environment(tmp_path: Path) -> None:
    config_path = write_accounts_config(
        tmp_path,
        """
accounts:
  - id: env-account
    github_token: ${GITHUB_TOKEN_MISSING}
  - id: 42
    github_token: token
""",
    )

    with pytest.raises(ConfigValidationError, match="index 1"):
        AccountsConfigStore(str(config_path)).resolve()


def test_override_path_comes_from_accounts_config_setting(
    tmp_path: Path, monkeypatch: Any
) -> None:
    from copilot_gateway.settings import Settings

    config_path = write_accounts_config(tmp_path, TWO_ACCOUNTS, name="accounts.yaml")
    monkeypatch.setenv("ACCOUNTS_CONFIG", str(config_path))

    store = AccountsConfigStore.from_settings(Settings())

    assert store.config_path == config_path
    assert store.resolve().default_account_id == "primary"


def test_default_path_is_config_yaml_in_working_directory(
    tmp_path: Path, monkeypatch: Any
) -> None:
    write_accounts_config(tmp_path, TWO_ACCOUNTS)
    monkeypatch.chdir(tmp_path)

    store = AccountsConfigStore("   ")

    assert store.config_path == Path.cwd() / "config.yaml"
    assert store.resolve().account_ids == ["primary", "backup"]


def test_relative_override_is_resolved_against_working_directory(tmp_path: Path) -> None:
    resolved = resolve_config_path("conf/../accounts.yaml", cwd=tmp_path)

    assert resolved == tmp_path / "accounts.yaml"
    assert resolved.is_absolute()


def test_select_account_defaults_to_first_entry_and_accepts_explicit_id(
    tmp_path: Path,
) -> None:
    config_path = write_accounts_config(tmp_path, TWO_ACCOUNTS)
    account_set = AccountsConfigStore(str(config_path)).resolve()

    assert select_account(account_set).id == "primary"
    assert select_account(account_set, " ").id == "primary"
    assert select_account(account_set, "backup").credential == "token-two"

    with pytest.raises(UnknownAccountError) as exc_info:
        select_account(account_set, "ghost")
    assert exc_info.value.available == ["primary", "backup"]
