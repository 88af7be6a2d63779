from click.testing import CliRunner

from swap_trader import __version__
from swap_trader.aggregator.schemas import Quote
from swap_trader.errors import QuoteUnavailable
from swap_trader.main import cli


def test_cli_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_status_smoke() -> None:
    result = CliRunner().invoke(cli, ["status"])
    assert result.exit_code == 0
    assert "[Monitor]" in result.output


def test_cli_quote_smoke(monkeypatch: object) -> None:
    def _fake_quote(self: object, input_mint: str, output_mint: str, amount: int, slippage_bps: int) -> Quote:
        return Quote.from_payload(
            {"inAmount": str(amount), "outAmount": str(amount * 2), "priceImpactPct": "0.1"},
            input_mint=input_mint,
            output_mint=output_mint,
            amount=amount,
            slippage_bps=slippage_bps,
        )

    monkeypatch.setattr("swap_trader.main.QuoteClient.quote", _fake_quote)
    result = CliRunner().invoke(cli, ["quote", "IN", "OUT", "1000"])
    assert result.exit_code == 0
    assert '"out_amount": 2000' in result.output


def test_cli_quote_unavailable_exits_nonzero(monkeypatch: object) -> None:
    def _fake_quote(self: object, *args: object) -> QuoteUnavailable:
        return QuoteUnavailable("quote_http_error: 503")

    monkeypatch.setattr("swap_trader.main.QuoteClient.quote", _fake_quote)
    result = CliRunner().invoke(cli, ["quote", "IN", "OUT", "1000"])
    assert result.exit_code == 1
    assert "quote_http_error" in result.output


def test_cli_quote_keeps_explicit_zero_slippage(monkeypatch: object) -> None:
    seen: list[int] = []

    def _fake_quote(self: object, input_mint: str, output_mint: str, amount: int, slippage_bps: int) -> QuoteUnavailable:
        seen.append(slippage_bps)
        return QuoteUnavailable("stop")

    monkeypatch.setattr("swap_trader.main.QuoteClient.quote", _fake_quote)
    CliRunner().invoke(cli, ["quote", "IN", "OUT", "1000", "--slippage-bps", "0"])
    CliRunner().invoke(cli, ["quote", "IN", "OUT", "1000"])
    assert seen == [0, 100]
