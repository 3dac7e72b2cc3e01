"""Contract addresses and minimal ABIs for protocol reads and plan targets."""

from multiply.data.constants import DAI, ETH, MAINNET, OPTIMISM, STETH, USDC, WBTC, WETH, WSTETH

# ---------------------------------------------------------------------------
# Token addresses per network (ETH resolves to WETH on-chain)
# ---------------------------------------------------------------------------
TOKEN_ADDRESSES: dict[str, dict[str, str]] = {
    MAINNET: {
        ETH: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        WETH: "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2",
        STETH: "0xae7ab96520DE3A18E5e111B5EaAb095312D7fE84",
        WSTETH: "0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0",
        DAI: "0x6B175474E89094C44Da98b954EedeAC495271d0F",
        USDC: "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48",
        WBTC: "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599",
    },
    OPTIMISM: {
        ETH: "0x4200000000000000000000000000000000000006",
        WETH: "0x4200000000000000000000000000000000000006",
        WSTETH: "0x1F32b1c2345538c0c6f582fCB022739c4A194Ebb",
        DAI: "0xDA10009cBd5D07dd0CeCc66161FC93D7c9000da1",
        USDC: "0x7F5c764cBc14f9669B88837ca1490cCa17c31607",
        WBTC: "0x68f180fcCe6836688e9084f035309E29Bf0A2095",
    },
}

# ---------------------------------------------------------------------------
# Aave V2 (Ethereum mainnet)
# ---------------------------------------------------------------------------
AAVE_V2_LENDING_POOL = "0x7d2768dE32b0b80b7a3454c06BdAc94A69DDc7A9"
AAVE_V2_PROTOCOL_DATA_PROVIDER = "0x057835Ad21a177dbdd3090bB1CAE03EaCF78Fc6d"
AAVE_V2_PRICE_ORACLE = "0xA50ba011c48153De246E5192C8f9258A2ba79Ca9"

# ---------------------------------------------------------------------------
# Aave V3
# ---------------------------------------------------------------------------
AAVE_V3_POOL: dict[str, str] = {
    MAINNET: "0x87870Bca3F3fD6335C3F4ce8392D69350B4fA4E2",
    OPTIMISM: "0x794a61358D6845594F94dc1DB02A252b5b4814aD",
}
AAVE_V3_POOL_DATA_PROVIDER: dict[str, str] = {
    MAINNET: "0x7B4EB56E7CD4b454BA8ff71E4518426369a138a3",
    OPTIMISM: "0x69FA688f1Dc47d4B5d8029D5a35FB7a548310654",
}
AAVE_V3_ORACLE: dict[str, str] = {
    MAINNET: "0x54586bE62E3c3580375aE3723C145253060Ca0C2",
    OPTIMISM: "0xD81eb3728a631871a7eBBaD631b5f424909f0c77",
}

# ---------------------------------------------------------------------------
# Maker (Ethereum mainnet)
# ---------------------------------------------------------------------------
MAKER_CDP_MANAGER = "0x5ef30b9986345249bc32d8928B7ee64DE9435E39"
MAKER_MCD_VIEW = "0x55Dc2Be8020bCa72E58e665dC931E03B749ea5E0"
MAKER_JOIN_DAI = "0x9759A6Ac90977b93B58547b4A71c78317f391A28"
MAKER_JOINS: dict[str, str] = {
    ETH: "0x2F0b23f53734252Bda2277357e97e1517d6B042A",  # ETH-A
    WETH: "0x2F0b23f53734252Bda2277357e97e1517d6B042A",
    WSTETH: "0x10CD5fbe1b404B7E19Ef964B63939907bdaf42E2",  # WSTETH-A
    WBTC: "0xBF72Da2Bd84c5170618Fbe5914B0ECA9638d5eb5",  # WBTC-A
}
MAKER_ILKS: dict[str, str] = {
    ETH: "ETH-A",
    WETH: "ETH-A",
    WSTETH: "WSTETH-A",
    WBTC: "WBTC-A",
}

# ---------------------------------------------------------------------------
# Minimal ABIs: only the view functions the readers call
# ---------------------------------------------------------------------------

USER_RESERVE_DATA_ABI = [
    {
        "inputs": [
            {"name": "asset", "type": "address"},
            {"name": "user", "type": "address"},
        ],
        "name": "getUserReserveData",
        "outputs": [
            {"name": "currentATokenBalance", "type": "uint256"},
            {"name": "currentStableDebt", "type": "uint256"},
            {"name": "currentVariableDebt", "type": "uint256"},
            {"name": "principalStableDebt", "type": "uint256"},
            {"name": "scaledVariableDebt", "type": "uint256"},
            {"name": "stableBorrowRate", "type": "uint256"},
            {"name": "liquidityRate", "type": "uint256"},
            {"name": "stableRateLastUpdated", "type": "uint40"},
            {"name": "usageAsCollateralEnabled", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getReserveConfigurationData",
        "outputs": [
            {"name": "decimals", "type": "uint256"},
            {"name": "ltv", "type": "uint256"},
            {"name": "liquidationThreshold", "type": "uint256"},
            {"name": "liquidationBonus", "type": "uint256"},
            {"name": "reserveFactor", "type": "uint256"},
            {"name": "usageAsCollateralEnabled", "type": "bool"},
            {"name": "borrowingEnabled", "type": "bool"},
            {"name": "stableBorrowRateEnabled", "type": "bool"},
            {"name": "isActive", "type": "bool"},
            {"name": "isFrozen", "type": "bool"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

ORACLE_ABI = [
    {
        "inputs": [{"name": "asset", "type": "address"}],
        "name": "getAssetPrice",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]

AAVE_V3_POOL_ABI = [
    {
        "inputs": [{"name": "user", "type": "address"}],
        "name": "getUserEMode",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "id", "type": "uint8"}],
        "name": "getEModeCategoryData",
        "outputs": [
            {
                "components": [
                    {"name": "ltv", "type": "uint16"},
                    {"name": "liquidationThreshold", "type": "uint16"},
                    {"name": "liquidationBonus", "type": "uint16"},
                    {"name": "priceSource", "type": "address"},
                    {"name": "label", "type": "string"},
                ],
                "name": "",
                "type": "tuple",
            }
        ],
        "stateMutability": "view",
        "type": "function",
    },
]

MCD_VIEW_ABI = [
    {
        "inputs": [
            {"name": "vaultId", "type": "uint256"},
            {"name": "ilk", "type": "bytes32"},
        ],
        "name": "getVaultInfo",
        "outputs": [
            {"name": "", "type": "uint256"},
            {"name": "", "type": "uint256"},
        ],
        "stateMutability": "view",
        "type": "function",
    },
    {
        "inputs": [{"name": "ilk", "type": "bytes32"}],
        "name": "getPrice",
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
        "type": "function",
    },
]
