"""Asset identifiers, precisions and protocol constants."""

# Asset symbols
ETH = "ETH"
WETH = "WETH"
STETH = "STETH"
WSTETH = "WSTETH"
DAI = "DAI"
USDC = "USDC"
WBTC = "WBTC"

# Decimals per symbol
TOKEN_PRECISIONS: dict[str, int] = {
    ETH: 18,
    WETH: 18,
    STETH: 18,
    WSTETH: 18,
    DAI: 18,
    USDC: 6,
    WBTC: 8,
}
TYPICAL_PRECISION = 18

# uint256 max, the on-chain "everything" sentinel for payback/withdraw
MAX_UINT = 2**256 - 1

# Swap fee: bips over a 10_000 base (20 = 0.2%)
FEE_BASE = 10_000
DEFAULT_FEE = 20

# Networks
MAINNET = "mainnet"
GOERLI = "goerli"
OPTIMISM = "optimism"

CHAIN_IDS: dict[str, int] = {
    MAINNET: 1,
    GOERLI: 5,
    OPTIMISM: 10,
}

# Aave V3 e-mode category IDs
EMODE_NONE = 0
EMODE_ETH_CORRELATED = 1
