"""Mock channel and credential issuer for testing."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import SecretStr

from tutorkit.core.errors import ChannelError, CredentialError
from tutorkit.models.identity import StudentIdentity
from tutorkit.realtime.channel import NORMAL_CLOSURE, DuplexChannel
from tutorkit.realtime.credentials import Credential, CredentialIssuer


@dataclass
class MockCall:
    """Record of a method call for test assertions."""

    method: str
    args: dict[str, Any] = field(default_factory=dict)


class MockDuplexChannel(DuplexChannel):
    """In-memory duplex channel.

    Records every sent message and provides helpers to simulate inbound
    messages and a remote close.

    Example:
        channel = MockDuplexChannel()
        await channel.open("wss://peer", {})
        await channel.simulate_message({"type": "response.audio.delta", "delta": "AAAA"})
        assert channel.sent[0]["type"] == "session.update"
    """

    def __init__(self, *, fail_open: Exception | None = None) -> None:
        super().__init__()
        self.calls: list[MockCall] = []
        self.sent: list[dict[str, Any]] = []
        self.url: str | None = None
        self.headers: dict[str, str] = {}
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self._fail_open = fail_open
        self._open = False

    @property
    def name(self) -> str:
        return "MockDuplexChannel"

    @property
    def is_open(self) -> bool:
        return self._open

    async def open(self, url: str, headers: dict[str, str] | None = None) -> None:
        self.calls.append(MockCall(method="open", args={"url": url}))
        if self._fail_open is not None:
            if isinstance(self._fail_open, ChannelError):
                raise self._fail_open
            raise ChannelError(str(self._fail_open)) from self._fail_open
        self.url = url
        self.headers = dict(headers or {})
        self._open = True

    async def send(self, message: dict[str, Any]) -> None:
        if not self._open:
            raise ChannelError("Channel is not open")
        self.sent.append(message)
        self.calls.append(MockCall(method="send", args={"keys": sorted(message)}))

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        self.calls.append(MockCall(method="close", args={"code": code, "reason": reason}))
        if not self._open:
            return
        self._open = False
        self.close_code = code
        self.close_reason = reason

    def sent_of_type(self, event_type: str) -> list[dict[str, Any]]:
        """Sent messages whose ``type`` field equals ``event_type``."""
        return [m for m in self.sent if m.get("type") == event_type]

    def sent_with_key(self, key: str) -> list[dict[str, Any]]:
        """Sent messages carrying the top-level ``key``."""
        return [m for m in self.sent if key in m]

    # -- Test helpers --

    async def simulate_message(self, message: dict[str, Any]) -> None:
        """Deliver an inbound message as if the peer had sent it."""
        await self._fire_message_callbacks(message)

    async def simulate_close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Simulate the peer (or network) closing the channel."""
        self._open = False
        self.close_code = code
        self.close_reason = reason
        await self._fire_close_callbacks(code, reason)


class MockCredentialIssuer(CredentialIssuer):
    """Credential issuer returning a canned token, or failing on demand."""

    def __init__(
        self,
        token: str = "test-token",
        *,
        model: str | None = None,
        fail: bool = False,
    ) -> None:
        self.calls: list[MockCall] = []
        self.token = token
        self.model = model
        self.fail = fail

    async def issue(
        self,
        system_instruction: str,
        student: StudentIdentity | None = None,
    ) -> Credential:
        self.calls.append(
            MockCall(
                method="issue",
                args={
                    "system_instruction": system_instruction,
                    "student_id": student.student_id if student else None,
                },
            )
        )
        if self.fail:
            raise CredentialError("Failed to get token")
        return Credential(token=SecretStr(self.token), model=self.model)
