import asyncio

import pytest

from src.domain.errors import ConfigurationError
from src.domain.models import InstrumentOutcome, RiskSettings
from src.trader.runner import check_instrument, parse_instruments, run_campaign


def test_parse_instruments_trims_and_keeps_order():
    assert parse_instruments("XAUUSD, EURUSD") == ["XAUUSD", "EURUSD"]


def test_parse_instruments_keeps_duplicates_and_empty_entries():
    assert parse_instruments("EURUSD,, EURUSD ,") == ["EURUSD", "", "EURUSD", ""]


def test_parse_instruments_custom_delimiter():
    assert parse_instruments("XAUUSD; EURUSD", delimiter=";") == ["XAUUSD", "EURUSD"]


def test_check_instrument_rejects_malformed_entries():
    assert check_instrument("XAUUSD") == "XAUUSD"
    assert check_instrument("") == ""
    with pytest.raises(ConfigurationError):
        check_instrument("EUR USD")
    with pytest.raises(ConfigurationError):
        check_instrument("EUR\x00USD")


def test_campaign_processes_instruments_in_order(session, events, sleeps):
    settings = RiskSettings(trading_pairs="XAUUSD, EURUSD")

    report = asyncio.run(run_campaign(session, settings, events, sleep=sleeps))

    assert report.instruments == ["XAUUSD", "EURUSD"]
    assert [r.outcome for r in report.reports] == [InstrumentOutcome.SUCCEEDED, InstrumentOutcome.SUCCEEDED]
    # XAUUSD is fully done before EURUSD is touched.
    touched = [instrument for _, instrument in session.calls]
    first_eur = touched.index("EURUSD")
    assert set(touched[:first_eur]) == {"XAUUSD"}
    assert set(touched[first_eur:]) == {"EURUSD"}
    assert [o["side"] for o in session.orders[:20]] == ["BUY"] * 20
    assert [o["side"] for o in session.orders[20:]] == ["SELL"] * 20


def test_campaign_preamble_and_pacing(session, events, sleeps):
    asyncio.run(run_campaign(session, RiskSettings(trading_pairs="XAUUSD"), events, sleep=sleeps))

    assert events.messages()[:5] == [
        "Verifying account....",
        "Account details successfully submitted.....",
        "Fetching trading symbols...",
        "Trading pairs: XAUUSD",
        "Analyzing market direction for XAUUSD",
    ]
    assert sleeps.delays[:2] == [2.0, 2.0]
    assert sleeps.delays[-1] == 1.0
    assert sleeps.delays == [2.0, 2.0] + [0.2] * 19 + [1.0]


def test_exhausted_instrument_does_not_stop_campaign(session, events, sleeps):
    session.quote_failures["XAUUSD"] = 99
    settings = RiskSettings(trading_pairs="XAUUSD,EURUSD")

    report = asyncio.run(run_campaign(session, settings, events, sleep=sleeps))

    assert [r.outcome for r in report.reports] == [InstrumentOutcome.EXHAUSTED, InstrumentOutcome.SUCCEEDED]
    assert len(session.orders) == 20
    assert {o["instrument"] for o in session.orders} == {"EURUSD"}


def test_empty_entry_is_attempted_and_exhausted(session, events, sleeps):
    report = asyncio.run(run_campaign(session, RiskSettings(trading_pairs="XAUUSD,"), events, sleep=sleeps))

    assert report.instruments == ["XAUUSD", ""]
    assert report.reports[1].outcome is InstrumentOutcome.EXHAUSTED
    assert report.reports[1].attempts == 4


def test_malformed_entry_is_logged_and_skipped(session, events, sleeps):
    report = asyncio.run(run_campaign(session, RiskSettings(trading_pairs="EUR USD, XAUUSD"), events, sleep=sleeps))

    assert report.skipped == ["EUR USD"]
    assert report.instruments == ["XAUUSD"]
    assert not any(instrument == "EUR USD" for _, instrument in session.calls)
    assert any(e.level == "ERROR" and e.symbol == "EUR USD" for e in events.tail(500))


def test_disconnected_session_runs_to_completion(make_session, events, sleeps):
    session = make_session(connected=False)

    report = asyncio.run(run_campaign(session, RiskSettings(trading_pairs="XAUUSD,EURUSD"), events, sleep=sleeps))

    assert [r.attempts for r in report.reports] == [1, 1]
    assert session.calls == []
