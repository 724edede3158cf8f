from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass

import aiohttp

from services.errors import DependencyFailure


@dataclass(frozen=True)
class ProvisionedAccount:
    account_id: str
    is_new: bool
    # Only set for freshly created accounts
    temporary_password: str | None = None


class AccountProvisioner(ABC):
    """Customer login accounts live in an external auth provider."""

    @abstractmethod
    async def create_account(self, email: str, profile: dict) -> ProvisionedAccount:
        """Idempotent by email: an existing account is returned with ``is_new=False``."""

    @abstractmethod
    async def remove_account(self, account_id: str) -> None:
        """Undo a ``create_account`` that returned ``is_new=True``."""


class HttpAccountProvisioner(AccountProvisioner):
    def __init__(self, base_url: str, api_key: str | None = None, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.headers = {"Content-Type": "application/json"}
        if api_key:
            self.headers["X-API-Key"] = api_key
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    async def create_account(self, email: str, profile: dict) -> ProvisionedAccount:
        if not self.base_url:
            raise DependencyFailure("Account provisioning is not configured")
        payload = {"email": email.lower(), "profile": profile, "role": "customer"}
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as s:
                async with s.post(f"{self.base_url}/accounts", json=payload, headers=self.headers) as r:
                    r.raise_for_status()
                    data = await r.json()
        except aiohttp.ClientError as e:
            raise DependencyFailure(f"Account provisioning failed: {e}") from e
        return ProvisionedAccount(
            account_id=str(data["account_id"]),
            is_new=bool(data.get("is_new", False)),
            temporary_password=data.get("password"),
        )

    async def remove_account(self, account_id: str) -> None:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as s:
                async with s.delete(f"{self.base_url}/accounts/{account_id}", headers=self.headers) as r:
                    r.raise_for_status()
        except aiohttp.ClientError as e:
            raise DependencyFailure(f"Could not remove account {account_id}: {e}") from e
