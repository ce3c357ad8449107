from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Notice:
    """A rendered message ready for delivery."""
    channel: str  # email
    to: str
    subject: str
    body: str
    template: str
    meta: dict = field(default_factory=dict)


@runtime_checkable
class NotifierPort(Protocol):
    async def send(self, notice: Notice) -> None: ...
