"""Factories selecting live or static collaborators."""

from __future__ import annotations

import logging
import os
from decimal import Decimal
from typing import Mapping

from multiply.data.interfaces import PositionReader, SwapQuoteProvider
from multiply.data.static_params import StaticPositionReader
from multiply.data.swap_quotes import FixedPriceQuoteProvider, OneInchQuoteProvider
from multiply.errors import ConfigurationError
from multiply.protocol.context import AaveV3Context, MakerContext, ProtocolContext

logger = logging.getLogger(__name__)


def create_position_reader(
    context: ProtocolContext,
    use_onchain: bool = False,
    rpc_url: str | None = None,
    cache_ttl: float = 300.0,
) -> PositionReader:
    """Create a position reader for ``context``.

    Parameters
    ----------
    context : ProtocolContext
        Protocol variant the reader serves.
    use_onchain : bool
        If True, create a web3-backed reader.
    rpc_url : str | None
        Ethereum JSON-RPC URL.  Falls back to the ``ETH_RPC_URL``
        environment variable when not supplied.
    cache_ttl : float
        TTL in seconds for cached market configuration.

    Raises
    ------
    ConfigurationError
        On-chain reads requested without an RPC URL.
    """
    if not use_onchain:
        category_id = context.category_id if isinstance(context, AaveV3Context) else 0
        return StaticPositionReader(context.protocol, category_id=category_id)

    resolved_url = rpc_url or os.environ.get("ETH_RPC_URL")
    if not resolved_url:
        raise ConfigurationError("On-chain reads requested but no RPC URL provided (ETH_RPC_URL)")

    from multiply.data.onchain_reader import AavePositionReader, MakerPositionReader

    logger.info("Using on-chain %s position reader", context.protocol)
    reader: AavePositionReader | MakerPositionReader
    if isinstance(context, MakerContext):
        reader = MakerPositionReader(resolved_url, context, cache_ttl=cache_ttl)
    else:
        reader = AavePositionReader(resolved_url, context, cache_ttl=cache_ttl)
    if not reader.is_connected:
        logger.warning("RPC endpoint %s is not reachable; reads will fail", resolved_url)
    return reader


def create_swap_quote_provider(
    swap_address: str | None = None,
    network: str = "mainnet",
    prices: Mapping[str, Decimal] | None = None,
) -> SwapQuoteProvider:
    """1inch when a swap contract address is given, fixed prices otherwise."""
    if swap_address:
        return OneInchQuoteProvider(swap_address, network=network)
    if prices is None:
        raise ConfigurationError("Fixed-price quotes need a price table")
    logger.info("Using fixed-price swap quotes for %s", sorted(prices))
    return FixedPriceQuoteProvider(prices)
