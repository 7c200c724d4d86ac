"""SMS and voice gateway (Twilio REST API over httpx).

Without credentials the gateway runs in log-only mode: every send is logged
and reported as sent, so the dispatch flow behaves the same in development
and tests as it does in production.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from xml.sax.saxutils import escape

import httpx

from sos_dispatch.core.alert_policies import FAILED, SENT
from sos_dispatch.core.config import Settings

logger = logging.getLogger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"

_PHONE_SEPARATORS = re.compile(r"[\s\-().]")


@dataclass
class GatewayOutcome:
    """Result of a single SMS or call attempt."""

    status: str  # sent | failed
    sid: str | None = None
    error: str | None = None
    stub: bool = False

    @property
    def ok(self) -> bool:
        return self.status == SENT


def normalize_phone(phone: str, default_country_code: str = "+91") -> str:
    """Normalize a phone number to E.164 (+<country><number>)."""
    cleaned = _PHONE_SEPARATORS.sub("", phone)
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("00"):
        return "+" + cleaned[2:]
    cleaned = cleaned.lstrip("0")
    country_digits = default_country_code.lstrip("+")
    # Already carries the country code, just without the plus
    if cleaned.startswith(country_digits) and len(cleaned) > 10:
        return "+" + cleaned
    return f"+{country_digits}{cleaned}"


class SmsVoiceGateway:
    """Sends SMS and places voice calls to emergency contacts."""

    def __init__(
        self,
        account_sid: str = "",
        auth_token: str = "",
        from_number: str = "",
        default_country_code: str = "+91",
        timeout_seconds: float = 10.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.default_country_code = default_country_code
        self._client = client or httpx.Client(timeout=timeout_seconds)

    @classmethod
    def from_settings(cls, settings: Settings) -> SmsVoiceGateway:
        gateway = cls(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_phone_number,
            default_country_code=settings.twilio_default_country_code,
            timeout_seconds=settings.twilio_timeout_seconds,
        )
        if not gateway.configured:
            logger.warning("Twilio credentials not configured; SMS and calls will only be logged")
        return gateway

    @property
    def configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send_sms(self, phone: str, text: str) -> GatewayOutcome:
        to = normalize_phone(phone, self.default_country_code)
        if not self.configured:
            logger.info("[SMS STUB] To: %s | Message: %s", to, text)
            return GatewayOutcome(status=SENT, stub=True)
        outcome = self._post("Messages", {"To": to, "From": self.from_number, "Body": text})
        if outcome.ok:
            logger.info("[SMS] Sent to %s | SID: %s", to, outcome.sid)
        return outcome

    def call(self, phone: str, script: str) -> GatewayOutcome:
        to = normalize_phone(phone, self.default_country_code)
        if not self.configured:
            logger.info("[CALL STUB] To: %s | Script: %s", to, script)
            return GatewayOutcome(status=SENT, stub=True)
        twiml = f'<Response><Say voice="alice" loop="2">{escape(script)}</Say></Response>'
        outcome = self._post("Calls", {"To": to, "From": self.from_number, "Twiml": twiml})
        if outcome.ok:
            logger.info("[CALL] Placed to %s | SID: %s", to, outcome.sid)
        return outcome

    def _post(self, resource: str, data: dict[str, str]) -> GatewayOutcome:
        url = f"{TWILIO_API_BASE}/Accounts/{self.account_sid}/{resource}.json"
        try:
            response = self._client.post(url, data=data, auth=(self.account_sid, self.auth_token))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error("[%s ERROR] Failed to reach %s: %s", resource.upper(), data.get("To"), exc)
            return GatewayOutcome(status=FAILED, error=str(exc))
        return GatewayOutcome(status=SENT, sid=response.json().get("sid"))

    def close(self) -> None:
        self._client.close()
