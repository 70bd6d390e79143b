from __future__ import annotations

from datetime import UTC, date, datetime

import pytest

from stratcore.compliance.audit import DAY_TRADE, PDT_VIOLATION, InMemoryAuditSink
from stratcore.compliance.orders import InMemoryOrderHistory
from stratcore.compliance.pdt import PatternDayTraderTracker, find_day_trades
from stratcore.core.config import Config
from stratcore.core.types import OrderStatus

NOW = datetime(2024, 1, 12, 15, 0, tzinfo=UTC)  # Friday


def _at(day: int, hour: int = 15) -> datetime:
    return datetime(2024, 1, day, hour, tzinfo=UTC)


@pytest.fixture()
def history() -> InMemoryOrderHistory:
    return InMemoryOrderHistory()


def _round_trips(history: InMemoryOrderHistory, make_order, days: list[int], symbol: str = "AAPL") -> None:
    for d in days:
        history.add(
            make_order("buy", _at(d, 14), symbol=symbol),
            make_order("sell", _at(d, 15), symbol=symbol),
        )


def test_find_day_trades_groups_by_date_and_symbol(make_order) -> None:
    orders = [
        make_order("buy", _at(8, 14), symbol="AAPL"),
        make_order("sell", _at(8, 15), symbol="aapl"),
        make_order("buy", _at(8, 16), symbol="AAPL"),
        make_order("sell", _at(8, 17), symbol="AAPL"),
        make_order("buy", _at(8, 14), symbol="MSFT"),
        make_order("sell", _at(8, 15), symbol="MSFT", status=OrderStatus.CANCELLED),
        make_order("buy", _at(9, 14), symbol="MSFT"),
        make_order("sell", _at(10, 14), symbol="MSFT"),
    ]
    trades = find_day_trades(orders)
    assert len(trades) == 1
    assert trades[0].date == date(2024, 1, 8)
    assert trades[0].symbol == "AAPL"
    assert (trades[0].buy_order_id, trades[0].sell_order_id) == ("o1", "o2")


def test_pattern_day_trader_below_minimum(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [8, 9, 10, 11])
    status = PatternDayTraderTracker(history).check_status("s1", 10_000.0, now=NOW)

    assert status.day_trade_count == 4
    assert status.is_day_trader
    assert not status.can_day_trade
    assert status.next_reset_date == date(2024, 1, 16)
    assert status.days_until_reset == 4
    assert status.warning is not None
    assert status.warning.startswith("Pattern Day Trader restriction active")
    assert "Current: $10,000" in status.warning


def test_trades_outside_window_are_ignored(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [4, 11])
    status = PatternDayTraderTracker(history).check_status("s1", 50_000.0, now=NOW)
    assert status.day_trade_count == 1
    assert status.warning == "1 day trade in last 5 days. 3 remaining before PDT status."


def test_one_before_threshold_warns(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [9, 10, 11])
    status = PatternDayTraderTracker(history).check_status("s1", 10_000.0, now=NOW)
    assert not status.is_day_trader
    assert status.warning == (
        "One more day trade will classify you as a Pattern Day Trader. "
        "Your account is below the $25,000 minimum."
    )


def test_no_trades_resets_today(history: InMemoryOrderHistory) -> None:
    status = PatternDayTraderTracker(history).check_status("s1", 10_000.0, now=NOW)
    assert status.day_trade_count == 0
    assert status.next_reset_date == date(2024, 1, 12)
    assert status.days_until_reset == 0
    assert status.warning is None


def test_validate_rejects_fourth_day_trade_when_underfunded(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [9, 10, 11])
    history.add(make_order("buy", _at(12, 10), symbol="TSLA"))
    audit = InMemoryAuditSink()

    decision = PatternDayTraderTracker(history, audit=audit).validate_day_trade("s1", "TSLA", 10_000.0, now=NOW)

    assert not decision.allowed
    assert decision.would_be_day_trade
    assert decision.reason == "PDT violation: 4 day trades would exceed limit. Account minimum: $25,000"
    assert audit.actions() == [PDT_VIOLATION]
    assert audit.entries[0].details["day_trade_count"] == 3


def test_validate_allows_funded_day_trade_and_records_it(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [9, 10, 11])
    history.add(make_order("buy", _at(12, 10), symbol="TSLA"))
    audit = InMemoryAuditSink()

    decision = PatternDayTraderTracker(history, audit=audit).validate_day_trade("s1", "TSLA", 30_000.0, now=NOW)

    assert decision.allowed
    assert decision.would_be_day_trade
    assert decision.reason is None
    assert audit.actions() == [DAY_TRADE]
    assert audit.entries[0].details["day_trade_count"] == 4


def test_validate_without_buy_today_is_not_a_day_trade(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [9, 10, 11])
    history.add(make_order("buy", _at(11, 10), symbol="TSLA"))
    audit = InMemoryAuditSink()

    decision = PatternDayTraderTracker(history, audit=audit).validate_day_trade("s1", "TSLA", 10_000.0, now=NOW)

    assert decision.allowed
    assert not decision.would_be_day_trade
    assert audit.entries == []


def test_other_strategies_do_not_count(history: InMemoryOrderHistory, make_order) -> None:
    for d in (8, 9, 10, 11):
        history.add(
            make_order("buy", _at(d, 14), strategy_id="other"),
            make_order("sell", _at(d, 15), strategy_id="other"),
        )
    assert PatternDayTraderTracker(history).check_status("s1", 10_000.0, now=NOW).day_trade_count == 0


def test_history_uses_longer_window(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [2, 11])
    tracker = PatternDayTraderTracker(history)
    hist = tracker.history("s1", now=NOW)
    assert [t.date for t in hist.day_trades] == [date(2024, 1, 2), date(2024, 1, 11)]
    assert hist.violations == ()


def test_configured_tracker_rejects_fifth_day_trade(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [8, 9, 10, 11])
    history.add(make_order("buy", _at(12, 10), symbol="NEW"))
    tracker = PatternDayTraderTracker(history, config=Config().compliance)

    status = tracker.check_status("s1", 10_000.0, now=NOW)
    assert status.is_day_trader
    assert status.pdt_minimum == 25_000.0

    decision = tracker.validate_day_trade("s1", "NEW", 10_000.0, now=NOW)
    assert not decision.allowed
    assert decision.reason is not None and "$25,000" in decision.reason


def test_history_reads_back_recorded_violations(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [9, 10, 11])
    history.add(make_order("buy", _at(12, 10), symbol="TSLA"))
    audit = InMemoryAuditSink()
    audit.log_action(PDT_VIOLATION, "other", {"symbol": "TSLA"})
    tracker = PatternDayTraderTracker(history, audit=audit)

    tracker.validate_day_trade("s1", "TSLA", 10_000.0, now=NOW)
    hist = tracker.history("s1", now=NOW)

    assert len(hist.day_trades) == 3
    (violation,) = hist.violations
    assert violation.action == PDT_VIOLATION
    assert violation.actor == "s1"
    assert violation.details["symbol"] == "TSLA"


def test_history_without_audit_has_no_violations(history: InMemoryOrderHistory, make_order) -> None:
    _round_trips(history, make_order, [11])
    hist = PatternDayTraderTracker(history).history("s1", days=5, now=NOW)
    assert len(hist.day_trades) == 1
    assert hist.violations == ()
