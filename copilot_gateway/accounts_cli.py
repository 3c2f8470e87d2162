from __future__ import annotations

import argparse
import sys
from typing import Any

from copilot_gateway.config import (
    AccountDefinition,
    AccountSet,
    AccountsConfigStore,
    ConfigError,
    select_account,
)
from copilot_gateway.settings import get_settings
from copilot_gateway.utils.yaml_utils import render_yaml


def mask_credential(credential: str) -> str:
    if len(credential) <= 8:
        return "*" * len(credential)
    return f"{credential[:4]}...{credential[-4:]}"


def build_accounts_summary(
    *,
    account_set: AccountSet,
    active_account: AccountDefinition,
    config_path: str,
    show_credentials: bool,
) -> dict[str, Any]:
    accounts: list[dict[str, Any]] = []
    for account in account_set.accounts:
        credential = account.credential
        accounts.append(
            {
                "id": account.id,
                "credential": credential
                if show_credentials
                else mask_credential(credential),
            }
        )
    return {
        "config_path": config_path,
        "default_account": account_set.default_account_id,
        "active_account": active_account.id,
        "accounts": accounts,
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="copilot-gateway-accounts",
        description="Resolve the accounts config and print a summary.",
    )
    parser.add_argument(
        "--path",
        default=None,
        help="Accounts config path (defaults to ACCOUNTS_CONFIG or ./config.yaml).",
    )
    parser.add_argument(
        "--account",
        default=None,
        help="Account id to select (defaults to ACCOUNT_ID or the first account).",
    )
    parser.add_argument(
        "--show-credentials",
        action="store_true",
        help="Print resolved credentials instead of masked values.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = get_settings()

    store = AccountsConfigStore(args.path or settings.accounts_config)
    try:
        account_set = store.resolve()
        active_account = select_account(
            account_set, args.account or settings.selected_account_id
        )
    except ConfigError as exc:
        sys.stderr.write(f"{exc}\n")
        return 1

    summary = build_accounts_summary(
        account_set=account_set,
        active_account=active_account,
        config_path=str(store.config_path),
        show_credentials=args.show_credentials,
    )
    sys.stdout.write(render_yaml(summary) + "\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
