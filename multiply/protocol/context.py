"""Protocol variants: per-protocol addresses and market metadata.

A strategy call receives one of ``AaveV2Context``, ``AaveV3Context`` or
``MakerContext``; the ``protocol`` tag selects the strategy family.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Literal, Mapping, Union

from multiply.data import contracts
from multiply.data.constants import DAI, EMODE_NONE, MAINNET
from multiply.errors import UnsupportedAsset

AAVE_V2 = "AAVE_V2"
AAVE_V3 = "AAVE_V3"
MAKER = "MAKER"


def _mainnet_tokens() -> Mapping[str, str]:
    return MappingProxyType(dict(contracts.TOKEN_ADDRESSES[MAINNET]))


@dataclass(frozen=True)
class AaveV2Context:
    operation_executor: str
    lending_pool: str = contracts.AAVE_V2_LENDING_POOL
    protocol_data_provider: str = contracts.AAVE_V2_PROTOCOL_DATA_PROVIDER
    price_oracle: str = contracts.AAVE_V2_PRICE_ORACLE
    tokens: Mapping[str, str] = field(default_factory=_mainnet_tokens)
    flashloan_token: str = DAI
    flashloan_token_max_ltv: Decimal = Decimal("0.75")
    protocol: Literal["AAVE_V2"] = AAVE_V2


@dataclass(frozen=True)
class AaveV3Context:
    operation_executor: str
    pool: str = contracts.AAVE_V3_POOL[MAINNET]
    pool_data_provider: str = contracts.AAVE_V3_POOL_DATA_PROVIDER[MAINNET]
    oracle: str = contracts.AAVE_V3_ORACLE[MAINNET]
    tokens: Mapping[str, str] = field(default_factory=_mainnet_tokens)
    category_id: int = EMODE_NONE
    flashloan_token: str = DAI
    flashloan_token_max_ltv: Decimal = Decimal("0.77")
    protocol: Literal["AAVE_V3"] = AAVE_V3


@dataclass(frozen=True)
class MakerContext:
    operation_executor: str
    vault_id: int = 0  # 0 = vault opened within the plan
    cdp_manager: str = contracts.MAKER_CDP_MANAGER
    mcd_view: str = contracts.MAKER_MCD_VIEW
    join_dai: str = contracts.MAKER_JOIN_DAI
    joins: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(contracts.MAKER_JOINS))
    )
    ilks: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(contracts.MAKER_ILKS))
    )
    tokens: Mapping[str, str] = field(default_factory=_mainnet_tokens)
    protocol: Literal["MAKER"] = MAKER


ProtocolContext = Union[AaveV2Context, AaveV3Context, MakerContext]
AaveContext = Union[AaveV2Context, AaveV3Context]


@dataclass(frozen=True)
class TokenAddresses:
    collateral: str
    debt: str
    collateral_join: str | None = None  # Maker only
    ilk: str | None = None  # Maker only


def resolve_token_addresses(
    context: ProtocolContext, collateral_symbol: str, debt_symbol: str
) -> TokenAddresses:
    """Map collateral/debt symbols to the protocol's asset identifiers.

    Raises:
        UnsupportedAsset: the protocol has no market for a symbol.
    """
    if isinstance(context, MakerContext):
        if debt_symbol != DAI:
            raise UnsupportedAsset(context.protocol, debt_symbol)
        join = context.joins.get(collateral_symbol)
        ilk = context.ilks.get(collateral_symbol)
        if join is None or ilk is None or collateral_symbol not in context.tokens:
            raise UnsupportedAsset(context.protocol, collateral_symbol)
        return TokenAddresses(
            collateral=context.tokens[collateral_symbol],
            debt=context.tokens[DAI],
            collateral_join=join,
            ilk=ilk,
        )

    for symbol in (collateral_symbol, debt_symbol):
        if symbol not in context.tokens:
            raise UnsupportedAsset(context.protocol, symbol)
    return TokenAddresses(
        collateral=context.tokens[collateral_symbol],
        debt=context.tokens[debt_symbol],
    )
