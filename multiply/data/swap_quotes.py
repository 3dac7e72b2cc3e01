"""Swap quote providers: 1inch aggregator over HTTP and a fixed-price stand-in."""

from __future__ import annotations

import logging
import os
from decimal import Decimal, localcontext
from typing import Mapping

import requests

from multiply.data.constants import CHAIN_IDS, MAINNET
from multiply.data.contracts import TOKEN_ADDRESSES
from multiply.data.interfaces import SwapQuote, SwapQuoteProvider
from multiply.errors import UnsupportedAsset, UnsupportedNetwork
from multiply.position.amounts import DECIMAL_CONTEXT, Token, floor_int, from_base_units

logger = logging.getLogger(__name__)

ONE_INCH_API_URL = "https://api.1inch.io/v4.0"
ALLOWED_PROTOCOLS = ("UNISWAP_V2", "UNISWAP_V3", "CURVE", "BALANCER_V2")


class OneInchQuoteProvider(SwapQuoteProvider):
    """Quotes from the 1inch ``/swap`` endpoint.

    Parameters
    ----------
    swap_address : str
        Contract that will execute the swap (the ``fromAddress`` 1inch builds
        calldata for).
    network : str
        Network name, see ``constants.CHAIN_IDS``.
    api_url : str | None
        Base URL; falls back to ``ONE_INCH_API_URL`` in the environment.
    """

    def __init__(
        self,
        swap_address: str,
        network: str = MAINNET,
        api_url: str | None = None,
        api_key: str | None = None,
        protocols: tuple[str, ...] = ALLOWED_PROTOCOLS,
        timeout: float = 30.0,
    ) -> None:
        if network not in CHAIN_IDS:
            raise UnsupportedNetwork(network)
        self.swap_address = swap_address
        self.network = network
        self.api_url = (api_url or os.environ.get("ONE_INCH_API_URL") or ONE_INCH_API_URL).rstrip("/")
        self.api_key = api_key or os.environ.get("ONE_INCH_API_KEY", "")
        self.protocols = protocols
        self.timeout = timeout

    def _address(self, token: Token) -> str:
        try:
            return TOKEN_ADDRESSES[self.network][token.symbol]
        except KeyError:
            raise UnsupportedAsset("1inch", token.symbol) from None

    def get_swap_quote(
        self,
        from_token: Token,
        to_token: Token,
        amount: Decimal,
        slippage: Decimal,
    ) -> SwapQuote:
        params = {
            "fromTokenAddress": self._address(from_token),
            "toTokenAddress": self._address(to_token),
            "amount": str(int(amount)),
            "fromAddress": self.swap_address,
            # 1inch takes slippage in percent
            "slippage": str(slippage * 100),
            "disableEstimate": "true",
            "allowPartialFill": "false",
            "protocols": ",".join(self.protocols),
        }
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        url = f"{self.api_url}/{CHAIN_IDS[self.network]}/swap"
        try:
            resp = requests.get(url, params=params, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
        except requests.RequestException:
            logger.warning(
                "1inch quote failed for %s -> %s", from_token.symbol, to_token.symbol, exc_info=True
            )
            raise
        data = resp.json()

        return SwapQuote(
            from_token=from_token.symbol,
            to_token=to_token.symbol,
            from_amount=Decimal(data["fromTokenAmount"]),
            to_amount=Decimal(data["toTokenAmount"]),
            calldata=data["tx"]["data"],
            exchange_address=data["tx"]["to"],
            source="1inch",
        )


class FixedPriceQuoteProvider(SwapQuoteProvider):
    """Quotes at fixed prices, converting between token precisions.

    ``prices`` maps symbols to a price in any common unit; a swap of ``x``
    source tokens returns ``x * price[source] / price[target]``.
    """

    def __init__(self, prices: Mapping[str, Decimal], calldata: str = "0x") -> None:
        self._prices = {symbol: Decimal(price) for symbol, price in prices.items()}
        self._calldata = calldata

    def get_swap_quote(
        self,
        from_token: Token,
        to_token: Token,
        amount: Decimal,
        slippage: Decimal,
    ) -> SwapQuote:
        try:
            rate = self._prices[from_token.symbol] / self._prices[to_token.symbol]
        except KeyError as exc:
            raise UnsupportedAsset("fixed-price", str(exc.args[0])) from None

        with localcontext(DECIMAL_CONTEXT):
            received = from_base_units(amount, from_token.precision) * rate
            to_amount = floor_int(received.scaleb(to_token.precision))

        return SwapQuote(
            from_token=from_token.symbol,
            to_token=to_token.symbol,
            from_amount=Decimal(amount),
            to_amount=Decimal(to_amount),
            calldata=self._calldata,
            source="fixed",
        )
