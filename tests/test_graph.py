import threading

import numpy as np
import pytest

from indicator_engine.config import config
from indicator_engine.contracts import CompositionCycleError, CompositionError, IndicatorInputError
from indicator_engine.indicators import momentum, trend, volatility, volume
from indicator_engine.indicators.graph import CompositionGraph, compose
from indicator_engine.indicators.rolling import WindowPolicy, rolling_max, rolling_min
from indicator_engine.shared.hashing import hash_values
from indicator_engine.shared.numeric import safe_divide_array
from indicator_engine.shared.parallel import get_parallel_pool


@pytest.fixture
def chain():
    return (
        CompositionGraph()
        .add_node("rsi", "RSI", {"period": 14})
        .add_node("rsi_sma", "SMA", {"period": 5}, source="rsi")
    )


def test_chain_feeds_primary_downstream(chain, bars):
    results = chain.evaluate(bars)
    expected = trend.sma(momentum.rsi(bars, {"period": 14}), {"period": 5})
    np.testing.assert_array_equal(results["rsi_sma"].primary.values, expected.primary.values)
    assert results["rsi_sma"].signals == expected.signals


def test_build_orders_nodes_by_level(chain):
    chain.add_node("ema", "EMA", {"period": 3})
    levels = chain.build()
    assert sorted(levels[0]) == ["ema", "rsi"]
    assert levels[1] == ["rsi_sma"]


def test_output_selection(bars):
    graph = (
        CompositionGraph()
        .add_node("macd", "MACD")
        .add_node("smooth", "EMA", {"period": 4}, source="macd", output="signal")
    )
    results = graph.evaluate(bars)
    expected = trend.ema(results["macd"]["signal"], {"period": 4})
    np.testing.assert_array_equal(results["smooth"].primary.values, expected.primary.values)


def test_bars_kind_node_over_a_computed_series(bars):
    graph = (
        CompositionGraph()
        .add_node("ema", "EMA", {"period": 10})
        .add_node("stoch", "STOCH", source="ema")
        .add_node("stoch_high", "STOCH", source="high")
    )
    results = graph.evaluate(bars)
    expected = momentum.stochastic(bars.with_primary(results["ema"].primary))
    np.testing.assert_array_equal(results["stoch"].primary.values, expected.primary.values)
    np.testing.assert_array_equal(
        results["stoch_high"].primary.values, momentum.stochastic(bars.with_input("high")).primary.values
    )


def test_stochastic_rsi_node_values(bars):
    graph = (
        CompositionGraph()
        .add_node("rsi", "RSI", {"period": 14})
        .add_node("stoch_rsi", "STOCH", {"period": 14}, source="rsi")
    )
    results = graph.evaluate(bars)
    rsi_line = results["rsi"].primary.values
    fast_k = results["stoch_rsi"].primary.values

    assert ((fast_k >= 0) & (fast_k <= 100)).all()
    # 가격 범위가 아니라 RSI 자신의 범위 기준이므로 대부분의 봉에서 0이 아니다
    assert (fast_k[30:] > 0).mean() > 0.5
    high, low = bars.with_primary(results["rsi"].primary).input_range()
    highest = rolling_max(high, 14, WindowPolicy.PARTIAL)
    lowest = rolling_min(low, 14, WindowPolicy.PARTIAL)
    expected = np.clip(safe_divide_array(rsi_line - lowest, highest - lowest) * 100, 0, 100)
    np.testing.assert_allclose(fast_k, expected)
    np.testing.assert_allclose(high[30:], rolling_max(rsi_line, 2, WindowPolicy.PARTIAL)[30:])


def test_volume_nodes_read_their_source(bars):
    graph = (
        CompositionGraph()
        .add_node("rsi", "RSI")
        .add_node("mfi_rsi", "MFI", source="rsi")
        .add_node("mfi_close", "MFI", source="close")
        .add_node("mfi_default", "MFI")
        .add_node("vwap_high", "VWAP", source="high")
        .add_node("vwap_low", "VWAP", source="low")
        .add_node("vwap_default", "VWAP")
    )
    results = graph.evaluate(bars)
    assert not np.allclose(results["mfi_rsi"].primary.values, results["mfi_close"].primary.values)
    np.testing.assert_array_equal(
        results["mfi_rsi"].primary.values, volume.mfi(bars.with_primary(results["rsi"].primary)).primary.values
    )
    np.testing.assert_array_equal(results["mfi_default"].primary.values, volume.mfi(bars).primary.values)
    assert (results["vwap_high"].primary.values > results["vwap_low"].primary.values).all()
    np.testing.assert_array_equal(results["vwap_default"].primary.values, volume.vwap(bars).primary.values)


def test_default_source_is_the_indicator_default(bars):
    graph = CompositionGraph().add_node("sma", "SMA", {"period": 5}).add_node("tr", "TR")
    assert graph.nodes["sma"].source is None
    results = graph.evaluate(bars)
    np.testing.assert_array_equal(results["sma"].primary.values, trend.sma(bars.close, {"period": 5}).primary.values)
    np.testing.assert_array_equal(results["tr"].primary.values, volatility.true_range(bars).primary.values)


def test_external_and_node_benchmarks(bars, benchmark_bars):
    graph = (
        CompositionGraph()
        .add_node("ema", "EMA", {"period": 5})
        .add_node("rnv_ext", "RNV", benchmark="market")
        .add_node("rnv_node", "RNV", benchmark="ema")
    )
    results = graph.evaluate(bars, others={"market": benchmark_bars.close})
    expected = volatility.relative_normalized_volatility(bars, benchmark_bars.close)
    np.testing.assert_array_equal(results["rnv_ext"].primary.values, expected.primary.values)
    assert len(results["rnv_node"]) == len(bars)


def test_benchmark_boundary_checks(bars):
    graph = CompositionGraph().add_node("rnv", "RNV", benchmark="market")
    with pytest.raises(CompositionError):
        graph.evaluate(bars)
    with pytest.raises(IndicatorInputError):
        graph.evaluate(bars, others={"market": bars.close[:-3]})


class TestConstructionErrors:
    def test_two_node_cycle(self):
        graph = CompositionGraph().add_node("a", "SMA", source="b").add_node("b", "EMA", source="a")
        with pytest.raises(CompositionCycleError) as exc_info:
            graph.build()
        assert exc_info.value.reason == "CYCLE"
        assert set(exc_info.value.nodes) == {"a", "b"}

    def test_self_cycle(self):
        graph = CompositionGraph().add_node("x", "SMA", source="x")
        with pytest.raises(CompositionCycleError):
            graph.build()

    def test_cycle_through_benchmark(self):
        graph = (
            CompositionGraph()
            .add_node("a", "RNV", benchmark="b")
            .add_node("b", "EMA", source="a")
        )
        with pytest.raises(CompositionCycleError):
            graph.build()

    def test_cycle_rejected_before_any_computation(self, bars, monkeypatch):
        graph = (
            CompositionGraph()
            .add_node("ok", "SMA")
            .add_node("a", "SMA", source="b")
            .add_node("b", "SMA", source="a")
        )
        calls = []
        monkeypatch.setattr(graph, "_evaluate_node", lambda *args: calls.append(args))
        with pytest.raises(CompositionCycleError):
            graph.evaluate(bars)
        assert calls == []

    @pytest.mark.parametrize("name", ["close", "typical_price"])
    def test_reserved_names(self, name):
        with pytest.raises(CompositionError) as exc_info:
            CompositionGraph().add_node(name, "SMA")
        assert exc_info.value.reason == "RESERVED_NAME"

    def test_duplicate_node(self):
        graph = CompositionGraph().add_node("a", "SMA")
        with pytest.raises(CompositionError) as exc_info:
            graph.add_node("a", "EMA")
        assert exc_info.value.reason == "DUPLICATE_NODE"

    @pytest.mark.parametrize("add, reason", [
        (lambda g: g.add_node("a", "NOPE"), "UNKNOWN_INDICATOR"),
        (lambda g: g.add_node("a", "SMA", {"period": -1}), "INVALID_PARAMS"),
        (lambda g: g.add_node("a", "SMA", {"lookback": 3}), "INVALID_PARAMS"),
        (lambda g: g.add_node("a", "SMA", source="missing"), "UNKNOWN_SOURCE"),
        (lambda g: g.add_node("a", "SMA", source="close", output="sma"), "UNKNOWN_OUTPUT"),
        (lambda g: g.add_node("a", "SMA", output="sma"), "UNKNOWN_OUTPUT"),
        (lambda g: g.add_node("r", "RSI").add_node("a", "SMA", source="r", output="nope"), "UNKNOWN_OUTPUT"),
        (lambda g: g.add_node("a", "RNV"), "MISSING_BENCHMARK"),
    ])
    def test_invalid_nodes(self, add, reason):
        graph = add(CompositionGraph())
        with pytest.raises(CompositionError) as exc_info:
            graph.build()
        assert exc_info.value.reason == reason


def test_evaluate_does_not_mutate_bars(chain, bars):
    before = bars.fingerprint()
    chain.add_node("stoch", "STOCH", source="rsi")
    chain.evaluate(bars)
    assert bars.fingerprint() == before
    assert bars.primary.name == "close"


def test_parallel_and_sequential_results_match(bars, monkeypatch):
    def make():
        graph = CompositionGraph()
        for period in (5, 10, 20, 40):
            graph.add_node(f"ema{period}", "EMA", {"period": period})
            graph.add_node(f"rsi{period}", "RSI", {"period": 14}, source=f"ema{period}")
        return graph

    monkeypatch.setattr(config, "PARALLEL_ENABLED", False)
    sequential = make().evaluate(bars)

    monkeypatch.setattr(config, "PARALLEL_ENABLED", True)
    monkeypatch.setattr(config, "PARALLEL_MAX_WORKERS", 4)
    parallel = make().evaluate(bars)

    assert sequential.keys() == parallel.keys()
    for name in sequential:
        assert hash_values(sequential[name].primary.values) == hash_values(parallel[name].primary.values)
        assert sequential[name].signals == parallel[name].signals


def test_each_level_gets_its_own_pool():
    assert get_parallel_pool() is not get_parallel_pool()


def test_concurrent_evaluations_of_one_graph(bars, monkeypatch):
    monkeypatch.setattr(config, "PARALLEL_ENABLED", True)
    monkeypatch.setattr(config, "PARALLEL_MAX_WORKERS", 4)
    graph = CompositionGraph()
    for period in (5, 10, 20, 40):
        graph.add_node(f"ema{period}", "EMA", {"period": period})
        graph.add_node(f"stoch{period}", "STOCH", source=f"ema{period}")
    expected = graph.evaluate(bars)

    outcomes, errors = [], []

    def run():
        try:
            for _ in range(3):
                outcomes.append(graph.evaluate(bars))
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=run) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert len(outcomes) == 12
    for results in outcomes:
        for name, result in expected.items():
            np.testing.assert_array_equal(results[name].primary.values, result.primary.values)


def test_fingerprint_ignores_insertion_order():
    first = CompositionGraph().add_node("a", "SMA", {"period": 3}).add_node("b", "EMA", source="a")
    second = CompositionGraph().add_node("b", "EMA", source="a").add_node("a", "SMA", {"period": 3})
    changed = CompositionGraph().add_node("a", "SMA", {"period": 4}).add_node("b", "EMA", source="a")
    assert first.fingerprint() == second.fingerprint()
    assert first.fingerprint() != changed.fingerprint()


def test_compose_helper(bars):
    rsi = momentum.rsi(bars)
    smoothed = compose("SMA", rsi, {"period": 5})
    np.testing.assert_array_equal(smoothed.primary.values, trend.sma(rsi, {"period": 5}).primary.values)
    on_signal = compose("EMA", rsi, {"period": 3}, output="signal")
    np.testing.assert_array_equal(on_signal.primary.values, trend.ema(rsi["signal"], {"period": 3}).primary.values)
    assert len(compose("STOCH", rsi, bars=bars)) == len(bars)
    with pytest.raises(CompositionError) as exc_info:
        compose("STOCH", rsi)
    assert exc_info.value.reason == "MISSING_BARS"
