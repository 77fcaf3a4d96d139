"""Storage-layer errors raised by account repositories.

These never reach HTTP callers directly: the auth service translates them
into the tagged errors in errors.py (or retries, for StaleAccountError).
"""

from __future__ import annotations


class RepositoryError(Exception):
    """Base class for account storage failures."""


class DuplicateAccountError(RepositoryError):
    """An insert collided with an existing account's email."""

    def __init__(self, email: str) -> None:
        super().__init__(f"account already exists for {email!r}")
        self.email = email


class StaleAccountError(RepositoryError):
    """A save lost the optimistic-concurrency race on ``version``."""

    def __init__(self, account_id: str, expected_version: int) -> None:
        super().__init__(
            f"account {account_id} changed since version {expected_version}"
        )
        self.account_id = account_id
        self.expected_version = expected_version
