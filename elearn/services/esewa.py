"""eSewa gateway: callback signatures and server-to-server transaction verification."""
import base64
import binascii
import hashlib
import hmac
import json
import logging
from dataclasses import dataclass

import httpx

from elearn.core.errors import GatewayUnavailable

logger = logging.getLogger(__name__)

SUCCESS_MARKER = "<response_code>Success</response_code>"
COMPLETE = "COMPLETE"

_HEADERS = {
    "Content-Type": "application/x-www-form-urlencoded",
    "User-Agent": "Mozilla/5.0 (compatible; eSewa-Verification/1.0)",
    "Accept": "*/*",
}


def sign(message: str, secret_key: str) -> str:
    """Base64 HMAC-SHA256, the form eSewa v2 uses for `signature`."""
    digest = hmac.new(secret_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def signature_message(fields: dict, signed_field_names: str) -> str:
    """`name=value,...` over the declared fields, in declared order."""
    names = [name.strip() for name in signed_field_names.split(",") if name.strip()]
    return ",".join(f"{name}={fields.get(name, '')}" for name in names)


def verify_signature(fields: dict, secret_key: str) -> bool:
    signature = fields.get("signature")
    signed_field_names = fields.get("signed_field_names")
    if not signature or not signed_field_names:
        return False
    expected = sign(signature_message(fields, signed_field_names), secret_key)
    return hmac.compare_digest(expected, signature)


def decode_callback_data(blob: str) -> dict:
    """Decode the base64 JSON `data` parameter eSewa appends to the success URL."""
    try:
        decoded = json.loads(base64.b64decode(blob, validate=False))
    except (binascii.Error, ValueError) as exc:
        raise ValueError("payment data is not valid base64 JSON") from exc
    if not isinstance(decoded, dict):
        raise ValueError("payment data must decode to an object")
    return decoded


@dataclass
class VerificationResult:
    success: bool
    mock: bool = False
    error: str | None = None


class EsewaClient:
    """Confirms a transaction with eSewa's transaction-record endpoint.

    The pooled primary client is tried first; on a transport failure a fresh,
    non-keep-alive connection is tried once. ``allow_mock`` turns a total
    failure into a mock success and must only be set outside production.
    """

    def __init__(
        self,
        merchant_id: str,
        verify_url: str,
        timeout: float = 30.0,
        allow_mock: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
        fallback_transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.merchant_id = merchant_id
        self.verify_url = verify_url
        self.timeout = timeout
        self.allow_mock = allow_mock
        self._fallback_transport = fallback_transport
        self._client = httpx.AsyncClient(timeout=timeout, headers=_HEADERS, transport=transport)
        if allow_mock:
            logger.warning("eSewa mock verification is enabled")

    async def aclose(self) -> None:
        await self._client.aclose()

    def _form(self, amount: str, reference_id: str, product_id: str) -> dict:
        return {"amt": str(amount), "scd": self.merchant_id, "rid": str(reference_id), "pid": str(product_id)}

    @staticmethod
    def _interpret(response: httpx.Response) -> VerificationResult:
        if SUCCESS_MARKER in response.text:
            return VerificationResult(success=True)
        return VerificationResult(success=False, error="Payment not verified by eSewa")

    async def _post_primary(self, form: dict) -> httpx.Response:
        response = await self._client.post(self.verify_url, data=form)
        response.raise_for_status()
        return response

    async def _post_fallback(self, form: dict) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={**_HEADERS, "Connection": "close"},
            transport=self._fallback_transport,
            limits=httpx.Limits(max_keepalive_connections=0),
        ) as client:
            response = await client.post(self.verify_url, data=form)
            response.raise_for_status()
            return response

    async def verify_transaction(self, amount: str, reference_id: str, product_id: str) -> VerificationResult:
        form = self._form(amount, reference_id, product_id)
        try:
            return self._interpret(await self._post_primary(form))
        except httpx.HTTPError as primary_exc:
            logger.warning("eSewa verification via primary transport failed: %s", primary_exc)
            try:
                return self._interpret(await self._post_fallback(form))
            except httpx.HTTPError as fallback_exc:
                logger.error("eSewa verification via fallback transport failed: %s", fallback_exc)
                if self.allow_mock:
                    logger.warning("Using mock eSewa verification for %s", product_id)
                    return VerificationResult(success=True, mock=True)
                raise GatewayUnavailable(
                    f"Network error: {primary_exc}. Please check your internet connection and try again."
                ) from fallback_exc
