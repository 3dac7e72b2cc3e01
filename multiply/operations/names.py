"""Action and operation identifiers understood by the execution layer."""

from enum import Enum


class ActionName(str, Enum):
    # Token movement
    PULL_TOKEN = "PullToken"
    WRAP_ETH = "WrapEth"
    UNWRAP_ETH = "UnwrapEth"
    RETURN_FUNDS = "ReturnFunds"
    SWAP = "SwapAction"
    TAKE_FLASHLOAN = "TakeFlashloan"
    REPAY_FLASHLOAN = "SendToken"
    # Lending
    DEPOSIT = "Deposit"
    BORROW = "Borrow"
    PAYBACK = "Payback"
    WITHDRAW = "Withdraw"
    SET_EMODE = "SetEMode"
    # Maker vaults
    OPEN_VAULT = "MakerOpenVault"
    GENERATE = "MakerGenerate"


class OperationName(str, Enum):
    AAVE_OPEN = "OpenAAVEPosition"
    AAVE_INCREASE = "IncreaseAAVEPosition"
    AAVE_DECREASE = "DecreaseAAVEPosition"
    AAVE_PAYBACK_WITHDRAW = "PaybackWithdrawAAVEPosition"
    AAVE_CLOSE = "CloseAAVEPosition"
    AAVE_V3_OPEN = "OpenAAVEV3Position"
    AAVE_V3_INCREASE = "IncreaseAAVEV3Position"
    AAVE_V3_DECREASE = "DecreaseAAVEV3Position"
    AAVE_V3_PAYBACK_WITHDRAW = "PaybackWithdrawAAVEV3Position"
    AAVE_V3_CLOSE = "CloseAAVEV3Position"
    MAKER_OPEN_MULTIPLY = "MakerOpenMultiply"
    MAKER_INCREASE_MULTIPLE = "MakerIncreaseMultiple"
    MAKER_INCREASE_MULTIPLE_WITH_FLASHLOAN = "MakerIncreaseMultipleWithFlashloan"
    MAKER_DECREASE_MULTIPLE = "MakerDecreaseMultiple"
    MAKER_DECREASE_MULTIPLE_WITH_FLASHLOAN = "MakerDecreaseMultipleWithFlashloan"
    MAKER_PAYBACK_WITHDRAW = "MakerPaybackWithdraw"
    MAKER_CLOSE_TO_COLLATERAL = "MakerCloseToCollateral"
    MAKER_CLOSE_TO_DAI = "MakerCloseToDai"
