"""Tests for the web3-backed position readers, with the RPC connection mocked."""

from __future__ import annotations

import logging
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest

from multiply.data.onchain_reader import (
    AavePositionReader,
    MakerPositionReader,
    _bps_to_decimal,
    _ilk_to_bytes32,
    _TTLCache,
    _wad_to_decimal,
)
from multiply.data.static_params import MAKER_CATEGORIES
from multiply.errors import UnsupportedAsset
from multiply.position.amounts import Token
from multiply.protocol.context import AaveV2Context, AaveV3Context, MakerContext

ETH = Token.of("ETH")
DAI = Token.of("DAI")
WBTC = Token.of("WBTC")
PROXY = "0x00000000000000000000000000000000000000aa"
WAD = 10**18


def _fake_w3(contracts: dict[str, MagicMock]) -> MagicMock:
    w3 = MagicMock()
    w3.to_checksum_address.side_effect = lambda address: address
    w3.eth.contract.side_effect = lambda address, abi: contracts[address]
    return w3


def _returning(values: dict):
    """Contract function stub: ``fn(key, ...).call()`` returns ``values[key]``."""
    return MagicMock(side_effect=lambda key, *args: MagicMock(call=MagicMock(return_value=values[key])))


# ======================================================================
# Unit conversions
# ======================================================================


class TestUnitConversions:
    def test_bps(self) -> None:
        assert _bps_to_decimal(8050) == Decimal("0.805")

    def test_wad(self) -> None:
        assert _wad_to_decimal(2900 * WAD) == Decimal(2900)

    def test_ilk_padding(self) -> None:
        raw = _ilk_to_bytes32("ETH-A")
        assert len(raw) == 32
        assert raw.startswith(b"ETH-A\0")


class TestTTLCache:
    def test_set_and_get(self) -> None:
        cache = _TTLCache(ttl=60)
        cache.set("k", 1)
        assert cache.get("k") == 1

    def test_expiry(self) -> None:
        cache = _TTLCache(ttl=0)
        cache.set("k", 1)
        with patch("multiply.data.onchain_reader.time.monotonic", return_value=1e12):
            assert cache.get("k") is None

    def test_clear(self) -> None:
        cache = _TTLCache(ttl=60)
        cache.set("k", 1)
        cache.clear()
        assert cache.get("k") is None


# ======================================================================
# Aave
# ======================================================================


class TestAaveReader:
    @pytest.fixture
    def context(self) -> AaveV3Context:
        return AaveV3Context(operation_executor="0xexec")

    @pytest.fixture
    def contracts(self, context: AaveV3Context) -> dict[str, MagicMock]:
        weth, dai = context.tokens["ETH"], context.tokens["DAI"]
        data_provider = MagicMock()
        # (aToken balance, stable debt, variable debt, ...)
        data_provider.functions.getUserReserveData = _returning(
            {weth: (10 * WAD, 0, 0), dai: (0, 0, 10_000 * WAD)}
        )
        data_provider.functions.getReserveConfigurationData = _returning(
            {weth: (18, 8050, 8300, 10500)}
        )
        oracle = MagicMock()
        oracle.functions.getAssetPrice = _returning({weth: 1600 * 10**8, dai: 10**8})
        pool = MagicMock()
        pool.functions.getUserEMode = _returning({PROXY: 0})
        pool.functions.getEModeCategoryData = _returning({1: (9350, 9550, 10100, "0x0", "ETH correlated")})
        return {
            context.pool: pool,
            context.pool_data_provider: data_provider,
            context.oracle: oracle,
        }

    @pytest.fixture
    def reader(self, context: AaveV3Context, contracts: dict[str, MagicMock]) -> AavePositionReader:
        with patch("multiply.data.onchain_reader._connect", return_value=_fake_w3(contracts)):
            return AavePositionReader("http://localhost:8545", context)

    def test_current_position(self, reader: AavePositionReader) -> None:
        position = reader.get_current_position(PROXY, ETH, DAI)
        assert position.collateral.amount == Decimal(10 * WAD)
        assert position.debt.amount == Decimal(10_000 * WAD)
        assert position.oracle_price == Decimal(1600)
        assert position.category.max_loan_to_value == Decimal("0.805")
        assert position.category.liquidation_bonus == Decimal("0.05")

    def test_emode_category(
        self, context: AaveV3Context, contracts: dict[str, MagicMock]
    ) -> None:
        contracts[context.pool].functions.getUserEMode = _returning({PROXY: 1})
        with patch("multiply.data.onchain_reader._connect", return_value=_fake_w3(contracts)):
            reader = AavePositionReader("http://localhost:8545", context)
        category = reader.get_current_position(PROXY, ETH, DAI).category
        assert category.category_id == 1
        assert category.max_loan_to_value == Decimal("0.935")
        assert category.label == "ETH correlated"

    def test_reserve_config_is_cached(
        self, reader: AavePositionReader, context: AaveV3Context, contracts: dict[str, MagicMock]
    ) -> None:
        reader.get_current_position(PROXY, ETH, DAI)
        reader.get_current_position(PROXY, ETH, DAI)
        fetch = contracts[context.pool_data_provider].functions.getReserveConfigurationData
        assert fetch.call_count == 1
        reader.refresh()
        reader.get_current_position(PROXY, ETH, DAI)
        assert fetch.call_count == 2

    def test_oracle_price(self, reader: AavePositionReader) -> None:
        assert reader.get_oracle_price(ETH, DAI) == Decimal(1600)
        assert reader.get_oracle_price(DAI, ETH) == Decimal(1) / Decimal(1600)

    def test_rpc_failure_is_logged_and_raised(
        self,
        reader: AavePositionReader,
        context: AaveV3Context,
        contracts: dict[str, MagicMock],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        failing = MagicMock(side_effect=ConnectionError("node down"))
        contracts[context.pool_data_provider].functions.getUserReserveData = MagicMock(
            return_value=MagicMock(call=failing)
        )
        with caplog.at_level(logging.WARNING), pytest.raises(ConnectionError):
            reader.get_current_position(PROXY, ETH, DAI)
        assert "RPC call failed" in caplog.text

    def test_unsupported_asset(self, reader: AavePositionReader) -> None:
        with pytest.raises(UnsupportedAsset):
            reader.get_current_position(PROXY, Token.of("FOO"), DAI)

    def test_stable_and_variable_debt_are_summed(
        self, context: AaveV3Context, contracts: dict[str, MagicMock]
    ) -> None:
        weth, dai = context.tokens["ETH"], context.tokens["DAI"]
        contracts[context.pool_data_provider].functions.getUserReserveData = _returning(
            {weth: (10 * WAD, 0, 0), dai: (0, 2_000 * WAD, 8_000 * WAD)}
        )
        with patch("multiply.data.onchain_reader._connect", return_value=_fake_w3(contracts)):
            reader = AavePositionReader("http://localhost:8545", context)
        position = reader.get_current_position(PROXY, ETH, DAI)
        assert position.debt.amount == Decimal(10_000 * WAD)

    def test_v2_reads_reserve_category(self) -> None:
        context = AaveV2Context(operation_executor="0xexec")
        weth, dai = context.tokens["ETH"], context.tokens["DAI"]
        data_provider = MagicMock()
        data_provider.functions.getUserReserveData = _returning(
            {weth: (5 * WAD, 0, 0), dai: (0, 0, 2_000 * WAD)}
        )
        data_provider.functions.getReserveConfigurationData = _returning({weth: (18, 8000, 8250, 10500)})
        oracle = MagicMock()
        oracle.functions.getAssetPrice = _returning({weth: 10**18, dai: 10**15})
        contracts = {context.protocol_data_provider: data_provider, context.price_oracle: oracle}
        with patch("multiply.data.onchain_reader._connect", return_value=_fake_w3(contracts)):
            reader = AavePositionReader("http://localhost:8545", context)

        position = reader.get_current_position(PROXY, ETH, DAI)
        assert position.oracle_price == Decimal(1000)
        assert position.category.max_loan_to_value == Decimal("0.8")
        assert position.category.category_id == 0


# ======================================================================
# Maker
# ======================================================================


class TestMakerReader:
    def _reader(self, context: MakerContext, mcd_view: MagicMock) -> MakerPositionReader:
        with patch("multiply.data.onchain_reader._connect", return_value=_fake_w3({context.mcd_view: mcd_view})):
            return MakerPositionReader("http://localhost:8545", context)

    @pytest.fixture
    def mcd_view(self) -> MagicMock:
        view = MagicMock()
        view.functions.getPrice = _returning(
            {_ilk_to_bytes32("ETH-A"): 2900 * WAD, _ilk_to_bytes32("WBTC-A"): 21_000 * WAD}
        )
        view.functions.getVaultInfo = _returning({42: (100 * WAD, 50_000 * WAD)})
        return view

    def test_vault_position(self, mcd_view: MagicMock) -> None:
        reader = self._reader(MakerContext("0xexec", vault_id=42), mcd_view)
        position = reader.get_current_position(PROXY, ETH, DAI)
        assert position.collateral.amount == Decimal(100 * WAD)
        assert position.debt.amount == Decimal(50_000 * WAD)
        assert position.oracle_price == Decimal(2900)
        assert position.category == MAKER_CATEGORIES["ETH"]

    def test_collateral_rescaled_to_token_precision(self, mcd_view: MagicMock) -> None:
        mcd_view.functions.getVaultInfo = _returning({42: (15 * WAD // 10, 10_000 * WAD)})
        reader = self._reader(MakerContext("0xexec", vault_id=42), mcd_view)
        position = reader.get_current_position(PROXY, WBTC, DAI)
        assert position.collateral.amount == Decimal(150_000_000)
        assert position.collateral.normalized == Decimal("1.5")

    def test_new_vault_is_empty(self, mcd_view: MagicMock) -> None:
        reader = self._reader(MakerContext("0xexec"), mcd_view)
        position = reader.get_current_position(PROXY, ETH, DAI)
        assert position.collateral.amount == 0
        assert position.debt.amount == 0
        mcd_view.functions.getVaultInfo.assert_not_called()

    def test_oracle_price(self, mcd_view: MagicMock) -> None:
        reader = self._reader(MakerContext("0xexec"), mcd_view)
        assert reader.get_oracle_price(ETH, DAI) == Decimal(2900)
        assert reader.get_oracle_price(DAI, DAI) == Decimal(1)

    def test_oracle_price_outside_dai(self, mcd_view: MagicMock) -> None:
        reader = self._reader(MakerContext("0xexec"), mcd_view)
        with pytest.raises(UnsupportedAsset):
            reader.get_oracle_price(ETH, Token.of("USDC"))
