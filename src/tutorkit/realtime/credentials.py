"""Short-lived peer credentials."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, SecretStr, ValidationError

from tutorkit.core.errors import CredentialError
from tutorkit.models.config import HTTPCredentialConfig
from tutorkit.models.identity import StudentIdentity

if TYPE_CHECKING:
    import httpx

logger = logging.getLogger("tutorkit.realtime.credentials")


class Credential(BaseModel):
    """A token the peer accepts, plus the model it was minted for."""

    token: SecretStr
    model: str | None = None
    expires_at: datetime | None = None


class CredentialIssuer(ABC):
    """Obtains a credential before each connection attempt."""

    @abstractmethod
    async def issue(
        self,
        system_instruction: str,
        student: StudentIdentity | None = None,
    ) -> Credential:
        """Return a fresh credential or raise :class:`CredentialError`."""
        ...

    async def close(self) -> None:  # noqa: B027
        """Release issuer resources."""


class StaticCredentialIssuer(CredentialIssuer):
    """Hands out a fixed API key (local development, tests)."""

    def __init__(self, api_key: str, *, model: str | None = None) -> None:
        if not api_key:
            raise ValueError("api_key must not be empty")
        self._credential = Credential(token=SecretStr(api_key), model=model)

    async def issue(
        self,
        system_instruction: str,
        student: StudentIdentity | None = None,
    ) -> Credential:
        return self._credential


class HTTPCredentialIssuer(CredentialIssuer):
    """Mints credentials by POSTing to a token endpoint.

    Request body::

        {"systemInstruction": "...", "studentId": "..."}

    The JSON response must carry ``apiKey`` (or ``token``) and may carry
    ``model`` and ``expiresAt``.  Transport errors, non-2xx statuses and
    responses without a token all raise :class:`CredentialError`.
    """

    def __init__(
        self,
        config: HTTPCredentialConfig,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        try:
            import httpx as _httpx
        except ImportError as exc:
            raise ImportError(
                "httpx is required for HTTPCredentialIssuer. Install it with: pip install httpx"
            ) from exc
        self._config = config
        self._httpx = _httpx
        self._owns_client = client is None
        self._client: httpx.AsyncClient = client or _httpx.AsyncClient(timeout=config.timeout)

    def _build_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {
            "Content-Type": "application/json",
            **self._config.headers,
        }
        if self._config.api_key is not None:
            headers["Authorization"] = f"Bearer {self._config.api_key.get_secret_value()}"
        return headers

    async def issue(
        self,
        system_instruction: str,
        student: StudentIdentity | None = None,
    ) -> Credential:
        payload: dict[str, Any] = {"systemInstruction": system_instruction}
        if student is not None:
            payload["studentId"] = student.student_id

        try:
            resp = await self._client.post(
                self._config.url,
                json=payload,
                headers=self._build_headers(),
            )
            resp.raise_for_status()
            data = resp.json()
        except self._httpx.TimeoutException as exc:
            raise CredentialError("Token endpoint timed out") from exc
        except self._httpx.HTTPStatusError as exc:
            raise CredentialError(
                f"Token endpoint returned HTTP {exc.response.status_code}"
            ) from exc
        except self._httpx.HTTPError as exc:
            raise CredentialError(f"Token request failed: {exc}") from exc
        except ValueError as exc:
            raise CredentialError("Token endpoint returned invalid JSON") from exc

        if not isinstance(data, dict):
            raise CredentialError("Token endpoint returned an unexpected payload")
        error = data.get("error")
        token = data.get("apiKey") or data.get("token")
        if not isinstance(token, str) or not token:
            raise CredentialError(str(error) if error else "Token endpoint returned no token")

        try:
            credential = Credential(
                token=SecretStr(token),
                model=data.get("model") or self._config.default_model,
                expires_at=data.get("expiresAt"),
            )
        except ValidationError as exc:
            raise CredentialError(f"Malformed token response: {exc}") from exc

        logger.info(
            "Credential issued (model=%s, student=%s)",
            credential.model,
            student.student_id if student else None,
        )
        return credential

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
