import sys
from pathlib import Path

import numpy as np
import pandas as pd

# Add project root to path
sys.path.append(str(Path(__file__).resolve().parent.parent))

from indicator_engine.config import config
from indicator_engine.indicators import BarSeries, CompositionGraph
from indicator_engine.shared.hashing import hash_values
from indicator_engine.shared.logger import get_logger, setup_main_logging, stop_main_logging

logger = get_logger("smoke")


def synthetic_frame(n: int = 300, seed: int = 2025) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    close = 100 + np.cumsum(rng.normal(0, 1, n))
    open_ = close + rng.normal(0, 0.5, n)
    return pd.DataFrame({
        "open": open_,
        "high": np.maximum(open_, close) + rng.uniform(0, 1, n),
        "low": np.minimum(open_, close) - rng.uniform(0, 1, n),
        "close": close,
        "volume": rng.integers(1_000, 10_000, n).astype(float),
    }, index=pd.date_range("2024-01-01", periods=n))


def build_graph() -> CompositionGraph:
    return (
        CompositionGraph()
        .add_node("rsi", "RSI", {"period": 14})
        .add_node("rsi_sma", "SMA", {"period": 5}, source="rsi")
        .add_node("kama", "KAMA", {"period": 10}, source="typical_price")
        .add_node("bb", "BB", {"period": 20}, source="kama")
        .add_node("macd", "MACD")
        .add_node("macd_signal_ema", "EMA", {"period": 3}, source="macd", output="signal")
        .add_node("stoch_rsi", "STOCH", {"period": 14}, source="rsi")
        .add_node("rnv", "RNV", {"period": 14}, benchmark="market")
    )


def run_smoke_test():
    print(">>> Starting Smoke Test (indicator engine)")
    setup_main_logging()
    try:
        df = synthetic_frame()
        bars = BarSeries.from_dataframe(df)
        market = synthetic_frame(seed=7)["close"].to_numpy()

        graph = build_graph()
        levels = graph.build()
        logger.info(f"[Smoke] {len(graph)} nodes in {len(levels)} levels, fingerprint={graph.fingerprint()[:12]}")

        first = graph.evaluate(bars, others={"market": market})
        second = graph.evaluate(bars, others={"market": market})

        report = pd.concat({name: result.to_frame(index=df.index) for name, result in first.items()}, axis=1)
        print(report.tail(5).T.to_string())

        failures = []
        for name, result in first.items():
            if len(result) != len(bars):
                failures.append(f"{name}: length {len(result)}")
            if hash_values(result.primary.values) != hash_values(second[name].primary.values):
                failures.append(f"{name}: non-deterministic")

        if failures:
            print(">>> Smoke Test FAILED:")
            for line in failures:
                print(f"  {line}")
        else:
            print(f">>> Smoke Test PASSED! ({len(first)} nodes, parallel={config.PARALLEL_ENABLED})")

    except Exception as e:
        logger.error(f"!!! Smoke Test ERROR: {e}", exc_info=True)
        raise
    finally:
        stop_main_logging()


if __name__ == "__main__":
    run_smoke_test()
