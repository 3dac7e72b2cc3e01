"""Flashloan lender selection per network."""

from enum import IntEnum

from multiply.data.constants import DAI, GOERLI, MAINNET, OPTIMISM
from multiply.errors import UnsupportedNetwork


class FlashloanProvider(IntEnum):
    DSS_FLASH = 0  # Maker DssFlash, DAI only
    BALANCER = 1


_PROVIDERS: dict[str, FlashloanProvider] = {
    MAINNET: FlashloanProvider.DSS_FLASH,
    GOERLI: FlashloanProvider.DSS_FLASH,
    OPTIMISM: FlashloanProvider.BALANCER,
}


def resolve_flashloan_provider(network: str) -> FlashloanProvider:
    """Static per-network lookup.

    Raises:
        UnsupportedNetwork: no lender configured for ``network``.
    """
    try:
        return _PROVIDERS[network]
    except KeyError:
        raise UnsupportedNetwork(network) from None


def provider_lends(provider: FlashloanProvider, symbol: str) -> bool:
    """Whether ``provider`` can flashloan ``symbol`` directly."""
    if provider is FlashloanProvider.DSS_FLASH:
        return symbol == DAI
    return True
