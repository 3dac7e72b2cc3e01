"""Tests for the swap quote providers."""

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from multiply.data.swap_quotes import FixedPriceQuoteProvider, OneInchQuoteProvider
from multiply.errors import UnsupportedAsset, UnsupportedNetwork
from multiply.position.amounts import Token

ETH = Token.of("ETH")
DAI = Token.of("DAI")
USDC = Token.of("USDC")
WAD = 10**18


class TestFixedPrice:
    @pytest.fixture
    def provider(self) -> FixedPriceQuoteProvider:
        return FixedPriceQuoteProvider({"ETH": Decimal(1600), "DAI": Decimal(1), "USDC": Decimal(1)})

    def test_quote(self, provider: FixedPriceQuoteProvider) -> None:
        quote = provider.get_swap_quote(ETH, DAI, Decimal(WAD), Decimal("0.005"))
        assert quote.to_amount == Decimal(1600 * WAD)
        assert quote.from_amount == Decimal(WAD)
        assert quote.source == "fixed"

    def test_precision_conversion(self, provider: FixedPriceQuoteProvider) -> None:
        quote = provider.get_swap_quote(ETH, USDC, Decimal(WAD), Decimal(0))
        assert quote.to_amount == Decimal(1600 * 10**6)

    def test_output_rounds_down(self, provider: FixedPriceQuoteProvider) -> None:
        # 1 wei of DAI buys a fraction of a wei of ETH
        quote = provider.get_swap_quote(DAI, ETH, Decimal(1), Decimal(0))
        assert quote.to_amount == 0

    def test_unknown_token(self, provider: FixedPriceQuoteProvider) -> None:
        with pytest.raises(UnsupportedAsset):
            provider.get_swap_quote(Token.of("WBTC"), DAI, Decimal(10**8), Decimal(0))


class TestOneInch:
    @pytest.fixture
    def response(self) -> MagicMock:
        resp = MagicMock()
        resp.json.return_value = {
            "fromTokenAmount": str(WAD),
            "toTokenAmount": str(1_590 * WAD),
            "tx": {"data": "0xdeadbeef", "to": "0x1111111254fb6c44bac0bed2854e76f90643097d"},
        }
        return resp

    def test_quote(self, response: MagicMock) -> None:
        provider = OneInchQuoteProvider("0xswap", api_url="https://example.test/v4.0/")
        with patch("multiply.data.swap_quotes.requests.get", return_value=response) as get:
            quote = provider.get_swap_quote(ETH, DAI, Decimal(WAD), Decimal("0.005"))

        assert quote.to_amount == Decimal(1_590 * WAD)
        assert quote.calldata == "0xdeadbeef"
        assert quote.source == "1inch"
        url = get.call_args.args[0]
        params = get.call_args.kwargs["params"]
        assert url == "https://example.test/v4.0/1/swap"
        assert params["amount"] == str(WAD)
        assert params["fromAddress"] == "0xswap"
        assert Decimal(params["slippage"]) == Decimal("0.5")

    def test_api_key_header(self, response: MagicMock) -> None:
        provider = OneInchQuoteProvider("0xswap", api_key="secret")
        with patch("multiply.data.swap_quotes.requests.get", return_value=response) as get:
            provider.get_swap_quote(ETH, DAI, Decimal(WAD), Decimal("0.005"))
        assert get.call_args.kwargs["headers"]["Authorization"] == "Bearer secret"

    def test_api_url_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ONE_INCH_API_URL", "https://proxy.test")
        assert OneInchQuoteProvider("0xswap").api_url == "https://proxy.test"

    def test_http_error_propagates(self, response: MagicMock) -> None:
        response.raise_for_status.side_effect = requests.HTTPError("429")
        provider = OneInchQuoteProvider("0xswap")
        with patch("multiply.data.swap_quotes.requests.get", return_value=response):
            with pytest.raises(requests.HTTPError):
                provider.get_swap_quote(ETH, DAI, Decimal(WAD), Decimal("0.005"))

    def test_unknown_network(self) -> None:
        with pytest.raises(UnsupportedNetwork):
            OneInchQuoteProvider("0xswap", network="solana")

    def test_token_missing_on_network(self) -> None:
        provider = OneInchQuoteProvider("0xswap", network="optimism")
        with pytest.raises(UnsupportedAsset):
            provider.get_swap_quote(Token.of("STETH"), DAI, Decimal(WAD), Decimal("0.005"))
