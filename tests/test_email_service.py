import json

import httpx
import pytest

from family_photos.services.email_service import (
    DisabledProvider,
    EmailMessage,
    ResendProvider,
    build_invitation_email,
    build_magic_link_email,
)

MESSAGE = EmailMessage(
    to="nana@example.com", subject="Hello", html_body="<p>Hi</p>", text_body="Hi"
)


class TestResendProvider:
    """Tests for the Resend HTTP provider."""

    @pytest.mark.asyncio
    async def test_send_success(self):
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(200, json={"id": "email-123"})

        provider = ResendProvider(
            "re_key", "Family <noreply@example.com>", transport=httpx.MockTransport(handler)
        )
        result = await provider.send(MESSAGE)

        assert result == {"success": True, "id": "email-123"}
        request = captured[0]
        assert request.url == "https://api.resend.com/emails"
        assert request.headers["Authorization"] == "Bearer re_key"
        payload = json.loads(request.content)
        assert payload["to"] == ["nana@example.com"]
        assert payload["from"] == "Family <noreply@example.com>"
        assert payload["text"] == "Hi"

    @pytest.mark.asyncio
    async def test_send_api_error(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(422, text="bad sender"))
        provider = ResendProvider("re_key", "noreply@example.com", transport=transport)

        result = await provider.send(MESSAGE)
        assert result["success"] is False
        assert "422" in result["error"]

    @pytest.mark.asyncio
    async def test_send_accepted_without_json_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>ok</html>"))
        provider = ResendProvider("re_key", "noreply@example.com", transport=transport)

        result = await provider.send(MESSAGE)
        assert result == {"success": True, "id": None}

    @pytest.mark.asyncio
    async def test_send_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = httpx.MockTransport(handler)
        provider = ResendProvider("re_key", "noreply@example.com", transport=transport)
        result = await provider.send(MESSAGE)
        assert result["success"] is False


@pytest.mark.asyncio
async def test_disabled_provider_never_succeeds():
    result = await DisabledProvider().send(MESSAGE)
    assert result["success"] is False


def test_invitation_email_links_to_login():
    message = build_invitation_email(
        "nana@example.com", "https://photos.example.com/", "tok123", full_name="Nana"
    )
    assert message.to == "nana@example.com"
    assert "https://photos.example.com/login?invitation=tok123" in message.html_body
    assert "Hi Nana," in message.text_body


def test_magic_link_email_escapes_url():
    message = build_magic_link_email("nana@example.com", "https://x.test/auth?code=a&b=1", 15)
    assert "code=a&amp;b=1" in message.html_body
    assert "15 minutes" in message.text_body
