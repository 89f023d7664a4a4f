from urllib.parse import parse_qs

import httpx
import pytest

from commentboard.errors import VerificationFailure
from commentboard.verifier import TurnstileVerifier

URL = "https://challenges.example.com/siteverify"


def make_verifier(verify_http):
    return TurnstileVerifier("turnstile-secret", URL, verify_http)


def test_success(verify_http, verify_requests):
    result = make_verifier(verify_http).verify("good-token", "203.0.113.7")

    assert result.success
    assert result.hostname == "example.com"
    form = parse_qs(verify_requests[0].content.decode())
    assert form == {
        "secret": ["turnstile-secret"],
        "response": ["good-token"],
        "remoteip": ["203.0.113.7"],
    }


def test_rejected_token(verify_http):
    with pytest.raises(VerificationFailure, match="invalid-input-response"):
        make_verifier(verify_http).verify("bad-token")


def test_empty_token_makes_no_call(verify_http, verify_requests):
    with pytest.raises(VerificationFailure):
        make_verifier(verify_http).verify("")
    assert verify_requests == []


def test_service_message_is_shown():
    client = httpx.Client(transport=httpx.MockTransport(
        lambda r: httpx.Response(200, json={"success": False, "message": "Token expired"})
    ))
    with pytest.raises(VerificationFailure, match="Token expired"):
        make_verifier(client).verify("token")


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="oops"),
        httpx.Response(200, json={"success": "true"}),
        httpx.Response(200, json=[]),
    ],
)
def test_anything_but_success_true_fails(response):
    client = httpx.Client(transport=httpx.MockTransport(lambda r: response))
    with pytest.raises(VerificationFailure):
        make_verifier(client).verify("token")


def test_transport_error_fails():
    def handler(request):
        raise httpx.ConnectTimeout("timed out", request=request)

    client = httpx.Client(transport=httpx.MockTransport(handler))
    with pytest.raises(VerificationFailure, match="Verification failed"):
        make_verifier(client).verify("token")
