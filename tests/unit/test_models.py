"""Tests for whale data models."""

from datetime import UTC, datetime, timedelta

import pytest
from fakes import make_trader
from pydantic import ValidationError

from whalewatch.markets.models import (
    CacheEntry,
    MetricsStatus,
    Period,
    PeriodMetrics,
    TraderRecord,
)


class TestPeriod:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("24h", Period.DAY),
            ("7d", Period.WEEK),
            ("30d", Period.MONTH),
            ("all", Period.ALL),
            ("ALL", Period.ALL),
            ("week", Period.WEEK),
            ("DAY", Period.DAY),
            (" month ", Period.MONTH),
        ],
    )
    def test_parse(self, raw: str, expected: Period) -> None:
        assert Period.parse(raw) is expected

    def test_parse_rejects_unknown(self) -> None:
        with pytest.raises(ValueError, match="Unknown period"):
            Period.parse("1y")

    def test_api_values(self) -> None:
        assert [p.api_value for p in Period] == ["DAY", "WEEK", "MONTH", "ALL"]

    def test_start(self) -> None:
        now = datetime(2025, 3, 10, tzinfo=UTC)
        assert Period.WEEK.start(now) == now - timedelta(days=7)
        assert Period.ALL.start(now) is None


class TestTraderRecord:
    def test_address_lowercased(self) -> None:
        trader = make_trader(1, address="  0xABCdef  ")
        assert trader.address == "0xabcdef"

    def test_camel_case_input(self) -> None:
        trader = TraderRecord.model_validate(
            {"address": "0x1", "rank": 3, "userName": "whale", "xUsername": "whale_x"}
        )
        assert trader.user_name == "whale"
        assert trader.x_username == "whale_x"

    def test_camel_case_output(self) -> None:
        data = make_trader(1, profile_image="img").model_dump(by_alias=True)
        assert data["profileImage"] == "img"
        assert "xUsername" in data

    def test_rank_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            make_trader(0)


class TestPeriodMetrics:
    def test_unknown(self) -> None:
        m = PeriodMetrics.unknown()
        assert m.status is MetricsStatus.ERROR
        assert m.pnl == 0
        assert m.volume == 0
        assert m.trade_count == 0
        assert m.win_rate == 0
        assert m.smart_score == 0
        assert not m.is_final
        assert m.model_dump(by_alias=True, include={"trade_count", "win_rate", "smart_score"}) == {
            "tradeCount": 0,
            "winRate": 0.0,
            "smartScore": 0,
        }

    def test_pending(self) -> None:
        m = PeriodMetrics.pending()
        assert m.status is MetricsStatus.PENDING
        assert not m.is_success

    def test_zero_trades_is_known(self) -> None:
        m = PeriodMetrics(trade_count=0)
        assert m.trade_count == 0
        assert m.is_final

    def test_from_trader_is_provisional(self) -> None:
        m = PeriodMetrics.from_trader(make_trader(1, pnl=500.0, volume=9000.0, trades=42))
        assert m.pnl == 500.0
        assert m.volume == 9000.0
        assert m.trade_count == 42
        assert m.win_rate is None
        assert m.from_leaderboard
        assert not m.is_final

    def test_frozen(self) -> None:
        m = PeriodMetrics(pnl=1.0)
        with pytest.raises(ValidationError):
            m.pnl = 2.0  # type: ignore[misc]

    @pytest.mark.parametrize("field", ["win_rate", "smart_score"])
    def test_bounds(self, field: str) -> None:
        with pytest.raises(ValidationError):
            PeriodMetrics(**{field: 101})

    def test_legacy_camel_case_blob(self) -> None:
        m = PeriodMetrics.model_validate(
            {"pnl": 10, "volume": 20, "tradeCount": 3, "winRate": 0.25, "smartScore": 40}
        )
        assert m.trade_count == 3
        assert m.win_rate == 0.25
        assert m.smart_score == 40
        assert m.is_final


class TestCacheEntry:
    def test_json_uses_camel_case(self) -> None:
        entry = CacheEntry(address="0x1", periods={"all": PeriodMetrics(pnl=1.0)})
        data = entry.model_dump(mode="json", by_alias=True)
        assert set(data) == {"address", "periods", "periodUpdated", "lastUpdated"}
        assert data["periods"]["all"]["tradeCount"] is None
