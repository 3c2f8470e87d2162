from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from copilot_gateway.config import (
    AccountDefinition,
    AccountsConfigStore,
    ConfigError,
    select_account,
)
from copilot_gateway.gateway.auth import MasterKeyGate, install_master_key_gate
from copilot_gateway.settings import get_settings

app = FastAPI(
    title="Copilot Gateway",
    description="Local API proxy front door: account resolution and master-key auth.",
    version="0.1.0",
)

logger = logging.getLogger("uvicorn.error")

install_master_key_gate(app)


@app.on_event("startup")
async def startup() -> None:
    settings = get_settings()
    logger.setLevel(settings.log_level.upper())

    master_key_gate = MasterKeyGate.from_settings(settings)
    if master_key_gate.enabled:
        logger.info("master_key_detected inbound requests require Bearer auth")
    else:
        logger.info("master_key_not_set inbound authentication disabled")

    accounts_store = AccountsConfigStore.from_settings(settings, logger=logger)
    try:
        account_set = accounts_store.resolve()
        active_account = select_account(account_set, settings.selected_account_id)
    except ConfigError as exc:
        logger.error("startup_failed reason=%s", str(exc))
        raise

    logger.info(
        "using_account id=%s config_path=%s",
        active_account.id,
        accounts_store.config_path,
    )
    if settings.show_token:
        logger.info(
            "account_credential id=%s token=%s",
            active_account.id,
            active_account.credential,
        )

    app.state.settings = settings
    app.state.accounts_store = accounts_store
    app.state.account_set = account_set
    app.state.active_account = active_account
    app.state.master_key_gate = master_key_gate
    logger.info(
        "startup complete accounts=%d default_account=%s active_account=%s auth_enabled=%s",
        len(account_set.accounts),
        account_set.default_account_id,
        active_account.id,
        master_key_gate.enabled,
    )


@app.on_event("shutdown")
async def shutdown() -> None:
    accounts_store: AccountsConfigStore | None = getattr(
        app.state, "accounts_store", None
    )
    if accounts_store is not None:
        accounts_store.reset()
    logger.info("shutdown complete")


def get_active_account(request: Request) -> AccountDefinition:
    return request.app.state.active_account


@app.get("/health")
async def health(request: Request) -> dict[str, str]:
    return {"status": "ok", "account_id": get_active_account(request).id}


@app.exception_handler(ConfigError)
async def config_error_handler(_: Request, exc: ConfigError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc)})


def run() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "copilot_gateway.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,
    )


if __name__ == "__main__":
    run()
