import logging
from dataclasses import dataclass, field

import httpx

from commentboard.errors import VerificationFailure

logger = logging.getLogger(__name__)

TOKEN_FIELD = "cf-turnstile-response"


@dataclass
class VerificationResult:
    success: bool
    hostname: str | None = None
    challenge_ts: str | None = None
    error_codes: list = field(default_factory=list)


class TurnstileVerifier:
    """Exchanges a challenge token with the siteverify endpoint, once."""

    def __init__(self, secret: str, url: str, client: httpx.Client | None = None, timeout: float = 5.0):
        self.secret = secret
        self.url = url
        self.client = client or httpx.Client(timeout=timeout)

    def verify(self, token: str, remote_ip: str | None = None):
        if not token:
            raise VerificationFailure("Please complete the challenge")

        data = {"secret": self.secret, "response": token}
        if remote_ip:
            data["remoteip"] = remote_ip
        try:
            resp = self.client.post(self.url, data=data)
            outcome = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Challenge verification call failed: %s", e)
            raise VerificationFailure() from e

        if not isinstance(outcome, dict) or outcome.get("success") is not True:
            codes = outcome.get("error-codes", []) if isinstance(outcome, dict) else []
            message = outcome.get("message") if isinstance(outcome, dict) else None
            logger.info("Challenge rejected: %s", codes)
            raise VerificationFailure(message or ", ".join(codes) or "Verification failed")

        return VerificationResult(
            success=True,
            hostname=outcome.get("hostname"),
            challenge_ts=outcome.get("challenge_ts"),
            error_codes=outcome.get("error-codes", []),
        )

    def close(self):
        self.client.close()
