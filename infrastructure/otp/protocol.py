"""OtpLedger protocol. Services depend on this, not the concrete implementation."""

from typing import Optional, Protocol

from schemas.models.otp import OtpEntry


class OtpLedger(Protocol):
    async def issue(self, email: str) -> str: ...

    async def validate(self, email: str, code: str) -> bool: ...

    async def clear(self, email: str) -> None: ...

    async def peek(self, email: str) -> Optional[OtpEntry]: ...
