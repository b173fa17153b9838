from __future__ import annotations

from typing import Iterable, Optional, Protocol, TypeVar


class _HasEmail(Protocol):
    email: str


AccountT = TypeVar("AccountT", bound=_HasEmail)


def normalize_email(value: Optional[str]) -> str:
    if not value:
        return ""
    return value.strip().lower()


def find_account_by_email(accounts: Iterable[AccountT], email: str) -> Optional[AccountT]:
    wanted = normalize_email(email)
    if not wanted:
        return None
    for account in accounts:
        if normalize_email(account.email) == wanted:
            return account
    return None
