"""
Vault Models — records owned by the storage layer.

Field aliases follow the PascalCase PassWords backup layout so
packages written by older releases validate unchanged; snake_case names are
accepted too.
"""
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

ENCRYPTED_FIELDS = (
    "title",
    "username",
    "password",
    "description",
    "two_factor_secret",
)


class Vault(BaseModel):
    """A named, independently keyed collection of accounts."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = Field(default=None, alias="Id")
    name: str = Field(alias="Name")
    passhash: str = Field(alias="Passhash", min_length=1)
    salt: str = Field(alias="Salt", min_length=8)
    two_factor_secret: str = Field(default="", alias="TwoFactorSecret")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Vault name can't be empty")
        return v

    @field_validator("two_factor_secret", mode="before")
    @classmethod
    def empty_secret(cls, v):
        return v or ""

    @property
    def has_second_factor(self) -> bool:
        return bool(self.two_factor_secret)

    def __repr__(self) -> str:
        # never expose passhash, salt or secret
        return f"<Vault id={self.id} name={self.name!r}>"


class Account(BaseModel):
    """A credential record; encrypted fields hold base64 ciphertext at rest."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[int] = Field(default=None, alias="Id")
    vault_id: Optional[int] = Field(default=None, alias="DbID")
    title: Optional[str] = Field(default="", alias="Title")
    username: Optional[str] = Field(default="", alias="Username")
    password: Optional[str] = Field(default="", alias="Password")
    description: Optional[str] = Field(default="", alias="Description")
    type: Optional[str] = Field(default="", alias="Type")
    two_factor_secret: Optional[str] = Field(default="", alias="TwoFactorSecret")

    def __repr__(self) -> str:
        return f"<Account id={self.id} vault_id={self.vault_id}>"


class BackupPackage(BaseModel):
    """A vault record plus its accounts in encrypted-at-rest form."""

    model_config = ConfigDict(populate_by_name=True)

    database: Vault = Field(alias="Database")
    accounts: list[Account] = Field(default_factory=list, alias="Accounts")

    @field_validator("accounts", mode="before")
    @classmethod
    def null_accounts(cls, v):
        return v if v is not None else []
