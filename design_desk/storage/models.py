"""
Data models for storage layer.

Defines the client records persisted in the client file.
"""

from dataclasses import dataclass, field, replace
from typing import Dict


@dataclass(frozen=True)
class ClientRecord:
    """One client plan, keyed by its chat-platform role ID.

    Records are edited out-of-band by an administrator; the bot only
    ever changes `used`.
    """
    name: str
    monthly_quota: int
    used: int = 0

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise ValueError("client name must not be empty")
        if self.used < 0:
            raise ValueError("used must be >= 0")

    def with_used(self, used: int) -> "ClientRecord":
        return replace(self, used=used)


@dataclass
class ClientDirectory:
    """Every configured client, keyed by role ID. The sole persisted aggregate."""
    clients: Dict[int, ClientRecord] = field(default_factory=dict)

    def get(self, role_id: int) -> ClientRecord:
        return self.clients[role_id]

    def put(self, role_id: int, record: ClientRecord) -> None:
        self.clients[role_id] = record
