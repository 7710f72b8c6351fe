"""Tests for credential issuers."""

from __future__ import annotations

import json

import httpx
import pytest
from pydantic import SecretStr, ValidationError

from tutorkit.core.errors import CredentialError
from tutorkit.models.config import HTTPCredentialConfig
from tutorkit.models.identity import StudentIdentity
from tutorkit.realtime.credentials import HTTPCredentialIssuer, StaticCredentialIssuer
from tutorkit.realtime.mock import MockCredentialIssuer

TOKEN_URL = "https://tutor.example.com/api/realtime-token"


def _issuer(handler, **config) -> HTTPCredentialIssuer:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HTTPCredentialIssuer(HTTPCredentialConfig(url=TOKEN_URL, **config), client=client)


class TestHTTPCredentialConfig:
    def test_rejects_non_http_url(self) -> None:
        with pytest.raises(ValidationError):
            HTTPCredentialConfig(url="ftp://example.com/token")

    def test_rejects_missing_host(self) -> None:
        with pytest.raises(ValidationError):
            HTTPCredentialConfig(url="https:///token")


class TestHTTPCredentialIssuer:
    async def test_posts_instruction_and_student(self) -> None:
        seen: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            seen["extra"] = request.headers.get("X-Tenant")
            return httpx.Response(200, json={"apiKey": "ek_123", "model": "gpt-live"})

        issuer = _issuer(handler, api_key=SecretStr("server-key"), headers={"X-Tenant": "school"})
        credential = await issuer.issue("Teach fractions.", StudentIdentity(student_id="s-1"))

        assert seen["body"] == {"systemInstruction": "Teach fractions.", "studentId": "s-1"}
        assert seen["auth"] == "Bearer server-key"
        assert seen["extra"] == "school"
        assert credential.token.get_secret_value() == "ek_123"
        assert credential.model == "gpt-live"

    async def test_token_field_and_default_model(self) -> None:
        issuer = _issuer(
            lambda request: httpx.Response(
                200, json={"token": "tok", "expiresAt": "2030-01-01T00:00:00Z"}
            ),
            default_model="fallback-model",
        )
        credential = await issuer.issue("x")
        assert credential.token.get_secret_value() == "tok"
        assert credential.model == "fallback-model"
        assert credential.expires_at is not None
        assert credential.expires_at.year == 2030

    async def test_student_is_optional(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"apiKey": "k"})

        await _issuer(handler).issue("x")
        assert bodies == [{"systemInstruction": "x"}]

    async def test_missing_token_fails(self) -> None:
        issuer = _issuer(lambda request: httpx.Response(200, json={"model": "m"}))
        with pytest.raises(CredentialError, match="no token"):
            await issuer.issue("x")

    async def test_error_field_used_as_message(self) -> None:
        issuer = _issuer(lambda request: httpx.Response(200, json={"error": "quota exceeded"}))
        with pytest.raises(CredentialError, match="quota exceeded"):
            await issuer.issue("x")

    async def test_http_error_status(self) -> None:
        issuer = _issuer(lambda request: httpx.Response(503, json={"error": "down"}))
        with pytest.raises(CredentialError, match="503"):
            await issuer.issue("x")

    async def test_invalid_json(self) -> None:
        issuer = _issuer(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(CredentialError, match="invalid JSON"):
            await issuer.issue("x")

    async def test_non_object_payload(self) -> None:
        issuer = _issuer(lambda request: httpx.Response(200, json=["k"]))
        with pytest.raises(CredentialError, match="unexpected payload"):
            await issuer.issue("x")

    async def test_timeout(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(CredentialError, match="timed out"):
            await _issuer(handler).issue("x")

    async def test_transport_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(CredentialError, match="Token request failed"):
            await _issuer(handler).issue("x")

    async def test_close_leaves_injected_client_open(self) -> None:
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"apiKey": "k"}))
        )
        issuer = HTTPCredentialIssuer(HTTPCredentialConfig(url=TOKEN_URL), client=client)
        await issuer.close()
        assert not client.is_closed
        await client.aclose()

    async def test_close_owned_client(self) -> None:
        issuer = HTTPCredentialIssuer(HTTPCredentialConfig(url=TOKEN_URL))
        await issuer.close()
        assert issuer._client.is_closed


class TestStaticCredentialIssuer:
    async def test_returns_key(self) -> None:
        issuer = StaticCredentialIssuer("sk-local", model="m")
        credential = await issuer.issue("anything")
        assert credential.token.get_secret_value() == "sk-local"
        assert credential.model == "m"

    def test_empty_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            StaticCredentialIssuer("")

    def test_token_not_in_repr(self) -> None:
        issuer = StaticCredentialIssuer("sk-secret")
        assert "sk-secret" not in repr(issuer._credential)


class TestMockCredentialIssuer:
    async def test_records_calls(self) -> None:
        issuer = MockCredentialIssuer("tok")
        await issuer.issue("Teach.", StudentIdentity(student_id="s-9"))
        assert issuer.calls[0].method == "issue"
        assert issuer.calls[0].args == {"system_instruction": "Teach.", "student_id": "s-9"}

    async def test_fail(self) -> None:
        with pytest.raises(CredentialError, match="Failed to get token"):
            await MockCredentialIssuer(fail=True).issue("x")
