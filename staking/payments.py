"""
Payment link generation through CryptAPI.

A payment link is made in two steps: ask CryptAPI for a forwarding address
that pays into our own wallet, then ask it for a QR code and payment URI
for that address and the requested value.
"""
import asyncio
from typing import Any, Dict, Optional, Protocol

import aiohttp
import structlog

from error_handling.errors import PaymentLinkError

logger = structlog.get_logger()


class PaymentLinkGenerator(Protocol):
    async def generate_payment_link(self, value: str) -> Dict[str, Any]:
        ...


class CryptApiPaymentLinks:
    """Creates CryptAPI payment addresses and QR codes for stake payments."""

    def __init__(
        self,
        own_address: str,
        callback_url: str,
        coin: str = "polygon/matic",
        base_url: str = "https://api.cryptapi.io",
        qr_size: int = 250,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.own_address = own_address
        self.callback_url = callback_url
        self.coin = coin.strip("/")
        self.base_url = base_url.rstrip("/")
        self.qr_size = qr_size
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    async def generate_payment_link(self, value: str) -> Dict[str, Any]:
        """
        Generate a payment address and QR code for the given value.

        Args:
            value: Amount of coin the payer should send

        Returns:
            The CryptAPI QR code payload plus the ``address_in`` to pay to

        Raises:
            PaymentLinkError: If CryptAPI is unreachable or rejects a request
        """
        created = await self._request("create", {
            "callback": self.callback_url,
            "address": self.own_address,
        })
        address_in = created.get("address_in")
        if not address_in:
            raise PaymentLinkError("CryptAPI did not return a payment address")

        params = {"address": address_in, "size": str(self.qr_size)}
        if value:
            params["value"] = value
        qr = await self._request("qrcode", params)

        logger.info("payment_link_generated", coin=self.coin, address_in=address_in)
        return {**qr, "address_in": address_in}

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def _request(self, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self.base_url}/{self.coin}/{endpoint}/"
        session = self._get_session()
        try:
            async with session.get(url, params=params, timeout=self.timeout) as response:
                body = await response.json(content_type=None)
        except (aiohttp.ClientError, ValueError) as e:
            logger.error("cryptapi_request_failed", endpoint=endpoint, error=str(e))
            raise PaymentLinkError(f"CryptAPI {endpoint} request failed") from e
        except asyncio.TimeoutError as e:
            logger.error("cryptapi_request_timeout", endpoint=endpoint)
            raise PaymentLinkError(f"CryptAPI {endpoint} request timed out") from e

        if not isinstance(body, dict) or body.get("status") != "success":
            message = body.get("error", "unknown error") if isinstance(body, dict) else "invalid response"
            logger.error("cryptapi_request_rejected", endpoint=endpoint, error=message)
            raise PaymentLinkError(f"CryptAPI {endpoint} failed: {message}")
        return body

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session
