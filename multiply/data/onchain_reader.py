"""On-chain position readers for Aave V2/V3 and Maker via web3.py."""

from __future__ import annotations

import logging
import time
from decimal import ROUND_FLOOR, Decimal
from typing import Any, Callable

from multiply.data.constants import DAI
from multiply.data.contracts import (
    AAVE_V3_POOL_ABI,
    MCD_VIEW_ABI,
    ORACLE_ABI,
    USER_RESERVE_DATA_ABI,
)
from multiply.data.interfaces import PositionReader
from multiply.data.static_params import default_category
from multiply.errors import UnsupportedAsset
from multiply.position.amounts import Token, TokenAmount
from multiply.position.position import Position
from multiply.protocol.category import PositionCategory
from multiply.protocol.context import AaveContext, AaveV3Context, MakerContext, resolve_token_addresses

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# TTL cache
# ---------------------------------------------------------------------------

class _TTLCache:
    """Dict-based cache with per-entry TTL expiry, for slow-moving market config."""

    def __init__(self, ttl: float) -> None:
        self._ttl = ttl
        self._store: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        ts, value = entry
        if time.monotonic() - ts > self._ttl:
            del self._store[key]
            return None
        return value

    def set(self, key: str, value: Any) -> None:
        self._store[key] = (time.monotonic(), value)

    def clear(self) -> None:
        self._store.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _bps_to_decimal(bps: int) -> Decimal:
    """Convert basis points (1e4 scale) to a decimal fraction."""
    return Decimal(bps) / 10_000


def _wad_to_decimal(wad: int) -> Decimal:
    return Decimal(wad).scaleb(-18)


def _ilk_to_bytes32(ilk: str) -> bytes:
    return ilk.encode().ljust(32, b"\0")


def _connect(rpc_url: str) -> Any:
    from web3 import Web3

    return Web3(Web3.HTTPProvider(rpc_url))


class _Web3Reader:
    def __init__(self, rpc_url: str, cache_ttl: float) -> None:
        self._w3 = _connect(rpc_url)
        self._cache = _TTLCache(cache_ttl)

    def _contract(self, address: str, abi: list[dict]) -> Any:
        return self._w3.eth.contract(address=self._w3.to_checksum_address(address), abi=abi)

    def _cached(self, key: str, fetcher: Callable[[], Any]) -> Any:
        """Cache → RPC; RPC failures are logged and re-raised."""
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        value = self._call(key, fetcher)
        self._cache.set(key, value)
        return value

    def _call(self, key: str, fetcher: Callable[[], Any]) -> Any:
        try:
            return fetcher()
        except Exception:
            logger.warning("RPC call failed for key=%s", key, exc_info=True)
            raise

    def refresh(self) -> None:
        """Invalidate cached market configuration."""
        self._cache.clear()

    @property
    def is_connected(self) -> bool:
        try:
            return self._w3.is_connected()
        except Exception:
            return False


# ---------------------------------------------------------------------------
# Aave
# ---------------------------------------------------------------------------

class AavePositionReader(_Web3Reader, PositionReader):
    """Live Aave V2/V3 position reader.

    Collateral is the proxy's aToken balance, debt its stable plus variable
    debt; the oracle price is the ratio of the two assets' oracle prices,
    which share a base currency.
    """

    def __init__(self, rpc_url: str, context: AaveContext, cache_ttl: float = 300.0) -> None:
        super().__init__(rpc_url, cache_ttl)
        self._context = context
        if isinstance(context, AaveV3Context):
            data_provider, oracle = context.pool_data_provider, context.oracle
            self._pool = self._contract(context.pool, AAVE_V3_POOL_ABI)
        else:
            data_provider, oracle = context.protocol_data_provider, context.price_oracle
            self._pool = None
        self._data_provider = self._contract(data_provider, USER_RESERVE_DATA_ABI)
        self._oracle = self._contract(oracle, ORACLE_ABI)

    def _reserve_category(self, asset: str) -> PositionCategory:
        def _fetch() -> PositionCategory:
            config = self._data_provider.functions.getReserveConfigurationData(
                self._w3.to_checksum_address(asset)
            ).call()
            return PositionCategory(
                max_loan_to_value=_bps_to_decimal(config[1]),
                liquidation_threshold=_bps_to_decimal(config[2]),
                # Aave stores liquidation bonus as 10000 + bonus_bps
                liquidation_bonus=_bps_to_decimal(config[3] - 10_000),
            )

        return self._cached(f"reserve_category:{asset}", _fetch)

    def _emode_category(self, category_id: int) -> PositionCategory:
        def _fetch() -> PositionCategory:
            data = self._pool.functions.getEModeCategoryData(category_id).call()
            return PositionCategory(
                max_loan_to_value=_bps_to_decimal(data[0]),
                liquidation_threshold=_bps_to_decimal(data[1]),
                liquidation_bonus=_bps_to_decimal(data[2] - 10_000),
                category_id=category_id,
                label=data[4],
            )

        return self._cached(f"emode:{category_id}", _fetch)

    def _asset_price(self, asset: str) -> int:
        return self._call(
            f"price:{asset}", lambda: self._oracle.functions.getAssetPrice(asset).call()
        )

    def get_oracle_price(self, base_token: Token, quote_token: Token) -> Decimal:
        addresses = resolve_token_addresses(self._context, base_token.symbol, quote_token.symbol)
        base_price = self._asset_price(self._w3.to_checksum_address(addresses.collateral))
        quote_price = self._asset_price(self._w3.to_checksum_address(addresses.debt))
        return Decimal(base_price) / Decimal(quote_price)

    def get_current_position(
        self, proxy: str, collateral_token: Token, debt_token: Token
    ) -> Position:
        addresses = resolve_token_addresses(
            self._context, collateral_token.symbol, debt_token.symbol
        )
        user = self._w3.to_checksum_address(proxy)
        coll_addr = self._w3.to_checksum_address(addresses.collateral)
        debt_addr = self._w3.to_checksum_address(addresses.debt)

        coll_data = self._call(
            f"user_reserve:{coll_addr}",
            lambda: self._data_provider.functions.getUserReserveData(coll_addr, user).call(),
        )
        debt_data = self._call(
            f"user_reserve:{debt_addr}",
            lambda: self._data_provider.functions.getUserReserveData(debt_addr, user).call(),
        )
        coll_price = self._asset_price(coll_addr)
        debt_price = self._asset_price(debt_addr)

        category_id = 0
        if self._pool is not None:
            category_id = int(
                self._call("user_emode", lambda: self._pool.functions.getUserEMode(user).call())
            )
        if category_id:
            category = self._emode_category(category_id)
        else:
            category = self._reserve_category(addresses.collateral)

        return Position(
            debt=TokenAmount(
                Decimal(debt_data[1]) + Decimal(debt_data[2]), debt_token.symbol, debt_token.precision
            ),
            collateral=TokenAmount(
                Decimal(coll_data[0]), collateral_token.symbol, collateral_token.precision
            ),
            oracle_price=Decimal(coll_price) / Decimal(debt_price),
            category=category,
        )


# ---------------------------------------------------------------------------
# Maker
# ---------------------------------------------------------------------------

class MakerPositionReader(_Web3Reader, PositionReader):
    """Live Maker vault reader through McdView.

    Vat amounts are 18-decimal wads whatever the collateral's precision.
    ``proxy`` is not needed to locate a vault; the context's ``vault_id`` is.
    """

    def __init__(self, rpc_url: str, context: MakerContext, cache_ttl: float = 300.0) -> None:
        super().__init__(rpc_url, cache_ttl)
        self._context = context
        self._mcd_view = self._contract(context.mcd_view, MCD_VIEW_ABI)

    def _ilk_price(self, ilk: str | None) -> Decimal:
        raw = _ilk_to_bytes32(ilk or "")
        price = self._call(f"price:{ilk}", lambda: self._mcd_view.functions.getPrice(raw).call())
        return _wad_to_decimal(price)

    def get_oracle_price(self, base_token: Token, quote_token: Token) -> Decimal:
        """Spot price in DAI; Maker prices nothing else."""
        if quote_token.symbol != DAI:
            raise UnsupportedAsset(self._context.protocol, quote_token.symbol)
        if base_token.symbol == DAI:
            return Decimal(1)
        addresses = resolve_token_addresses(self._context, base_token.symbol, DAI)
        return self._ilk_price(addresses.ilk)

    def get_current_position(
        self, proxy: str, collateral_token: Token, debt_token: Token
    ) -> Position:
        addresses = resolve_token_addresses(
            self._context, collateral_token.symbol, debt_token.symbol
        )
        category = default_category(self._context.protocol, collateral_token.symbol)
        ilk = _ilk_to_bytes32(addresses.ilk or "")
        price = self._ilk_price(addresses.ilk)

        coll_wad, debt_wad = 0, 0
        if self._context.vault_id:
            coll_wad, debt_wad = self._call(
                f"vault:{self._context.vault_id}",
                lambda: self._mcd_view.functions.getVaultInfo(self._context.vault_id, ilk).call(),
            )

        collateral = Decimal(coll_wad).scaleb(collateral_token.precision - 18)
        collateral = collateral.to_integral_value(ROUND_FLOOR)
        return Position(
            debt=TokenAmount(Decimal(debt_wad), debt_token.symbol, debt_token.precision),
            collateral=TokenAmount(collateral, collateral_token.symbol, collateral_token.precision),
            oracle_price=price,
            category=category,
        )
