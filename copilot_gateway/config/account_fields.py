from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, model_validator

CREDENTIAL_FIELD = "github_token"


class AccountDefinition(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    credential: str = Field(min_length=1)


class AccountSet(BaseModel):
    model_config = ConfigDict(frozen=True)

    accounts: tuple[AccountDefinition, ...] = Field(min_length=1)
    default_account_id: str

    @model_validator(mode="after")
    def _check_members(self) -> AccountSet:
        ids = [account.id for account in self.accounts]
        if len(set(ids)) != len(ids):
            raise ValueError("account ids must be unique")
        if ids[0] != self.default_account_id:
            raise ValueError("default_account_id must be the first account id")
        return self

    @classmethod
    def from_accounts(cls, accounts: list[AccountDefinition]) -> AccountSet:
        return cls(accounts=tuple(accounts), default_account_id=accounts[0].id)

    @property
    def account_ids(self) -> list[str]:
        return [account.id for account in self.accounts]

    @property
    def default_account(self) -> AccountDefinition:
        account = self.get(self.default_account_id)
        if account is None:
            return self.accounts[0]
        return account

    def get(self, account_id: str) -> AccountDefinition | None:
        for account in self.accounts:
            if account.id == account_id:
                return account
        return None
