"""
One-time passcode ledger entry.

Lives in the OTP ledger (process memory or Redis), never in MongoDB.
code_hash stores SHA-256(code); the plain code only exists in the email.
attempts counts submissions against this entry; the entry is removed once it
reaches the ledger's ceiling.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class OtpEntry:
    email: str
    code_hash: str
    expires_at: datetime
    attempts: int = 0
    issued_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at
