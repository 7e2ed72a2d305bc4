from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Type

from indicator_engine.contracts import IndicatorConfig
from . import momentum, trend, volatility, volume

# "series": source(ComputedSeries/BarSeries/배열) 하나
# "bars":   BarSeries 필요 (high/low/volume 사용)
# "pair":   source + benchmark
INPUT_KINDS = ("series", "bars", "pair")


@dataclass
class IndicatorDefinition:
    id: str
    name: str
    category: str  # "trend", "momentum", "volatility", "volume"
    description: str
    compute: Callable[..., Any]
    config_cls: Optional[Type[IndicatorConfig]] = None
    input_kind: str = "series"
    outputs: List[str] = field(default_factory=list)

    def make_config(self, params: Optional[Dict[str, Any]] = None) -> Optional[IndicatorConfig]:
        if self.config_cls is None:
            return None
        return self.config_cls.from_dict(params)


# --- Indicator Universe Definition ---

INDICATOR_UNIVERSE: Dict[str, IndicatorDefinition] = {
    "SMA": IndicatorDefinition(
        id="SMA", name="Simple Moving Average", category="trend",
        description="Arithmetic mean over a trailing window.",
        compute=trend.sma, config_cls=trend.SMAConfig, outputs=["sma"],
    ),
    "WMA": IndicatorDefinition(
        id="WMA", name="Weighted Moving Average", category="trend",
        description="Linearly weighted mean, newest sample heaviest.",
        compute=trend.wma, config_cls=trend.WMAConfig, outputs=["wma"],
    ),
    "EMA": IndicatorDefinition(
        id="EMA", name="Exponential Moving Average", category="trend",
        description="First-order recursive filter with alpha = 2/(period+1).",
        compute=trend.ema, config_cls=trend.EMAConfig, outputs=["ema"],
    ),
    "WILDERS": IndicatorDefinition(
        id="WILDERS", name="Wilder's Smoothing", category="trend",
        description="First-order recursive filter with alpha = 1/period.",
        compute=trend.wilders_ma, config_cls=trend.WildersConfig, outputs=["wilders"],
    ),
    "KAMA": IndicatorDefinition(
        id="KAMA", name="Kaufman Adaptive Moving Average", category="trend",
        description="Adaptive filter driven by the efficiency ratio.",
        compute=trend.kama, config_cls=trend.KAMAConfig, outputs=["kama", "er"],
    ),
    "DEMA": IndicatorDefinition(
        id="DEMA", name="Double Exponential Moving Average", category="trend",
        description="2*EMA - EMA(EMA).",
        compute=trend.dema, config_cls=trend.DEMAConfig, outputs=["dema"],
    ),
    "TEMA": IndicatorDefinition(
        id="TEMA", name="Triple Exponential Moving Average", category="trend",
        description="3*EMA - 3*EMA(EMA) + EMA(EMA(EMA)).",
        compute=trend.tema, config_cls=trend.TEMAConfig, outputs=["tema"],
    ),
    "T3": IndicatorDefinition(
        id="T3", name="Tillson T3", category="trend",
        description="Weighted sum of a six-stage EMA cascade.",
        compute=trend.t3, config_cls=trend.T3Config, outputs=["t3"],
    ),
    "HMA": IndicatorDefinition(
        id="HMA", name="Hull Moving Average", category="trend",
        description="Moving average of 2*MA(n/2) - MA(n) over sqrt(n).",
        compute=trend.hull_ma, config_cls=trend.HullConfig, outputs=["hma"],
    ),
    "SUPER_SMOOTHER": IndicatorDefinition(
        id="SUPER_SMOOTHER", name="Ehlers Super Smoother", category="trend",
        description="Two-pole second-order recursive filter.",
        compute=trend.super_smoother, config_cls=trend.SuperSmootherConfig, outputs=["filter"],
    ),
    "MACD": IndicatorDefinition(
        id="MACD", name="Moving Average Convergence Divergence", category="trend",
        description="Fast MA minus slow MA with a signal line.",
        compute=trend.macd, config_cls=trend.MACDConfig, outputs=["macd", "signal", "histogram"],
    ),
    "RSI": IndicatorDefinition(
        id="RSI", name="Relative Strength Index", category="momentum",
        description="Measures the speed and change of price movements.",
        compute=momentum.rsi, config_cls=momentum.RSIConfig, outputs=["rsi", "signal", "histogram"],
    ),
    "STOCH": IndicatorDefinition(
        id="STOCH", name="Stochastic Oscillator", category="momentum",
        description="Position of the input inside the high/low range.",
        compute=momentum.stochastic, config_cls=momentum.StochasticConfig, input_kind="bars",
        outputs=["fast_k", "fast_d", "slow_d"],
    ),
    "ROC": IndicatorDefinition(
        id="ROC", name="Rate of Change", category="momentum",
        description="Percent change over a lookback.",
        compute=momentum.rate_of_change, config_cls=momentum.ROCConfig, outputs=["roc"],
    ),
    "TR": IndicatorDefinition(
        id="TR", name="True Range", category="volatility",
        description="Greatest of high-low and the gaps to the previous close.",
        compute=volatility.true_range, input_kind="bars", outputs=["tr"],
    ),
    "ATR": IndicatorDefinition(
        id="ATR", name="Average True Range", category="volatility",
        description="Smoothed true range.",
        compute=volatility.atr, config_cls=volatility.ATRConfig, input_kind="bars", outputs=["atr", "tr"],
    ),
    "STDDEV": IndicatorDefinition(
        id="STDDEV", name="Standard Deviation Volatility", category="volatility",
        description="Population standard deviation over a trailing window.",
        compute=volatility.std_dev_volatility, config_cls=volatility.StdDevConfig,
        outputs=["std_dev", "variance"],
    ),
    "BB": IndicatorDefinition(
        id="BB", name="Bollinger Bands", category="volatility",
        description="Volatility bands placed above and below a moving average.",
        compute=volatility.bollinger_bands, config_cls=volatility.BBConfig,
        outputs=["upper", "middle", "lower", "width"],
    ),
    "RNV": IndicatorDefinition(
        id="RNV", name="Relative Normalized Volatility", category="volatility",
        description="Normalized volatility relative to a benchmark series.",
        compute=volatility.relative_normalized_volatility, config_cls=volatility.RNVConfig,
        input_kind="pair", outputs=["rnv", "abs_z", "abs_z_benchmark"],
    ),
    "VWAP": IndicatorDefinition(
        id="VWAP", name="Volume Weighted Average Price", category="volume",
        description="Cumulative volume-weighted price.",
        compute=volume.vwap, config_cls=volume.VWAPConfig, input_kind="bars", outputs=["vwap"],
    ),
    "OBV": IndicatorDefinition(
        id="OBV", name="On Balance Volume", category="volume",
        description="Cumulative signed volume.",
        compute=volume.obv, config_cls=volume.OBVConfig, input_kind="bars", outputs=["obv", "signal"],
    ),
    "MFI": IndicatorDefinition(
        id="MFI", name="Money Flow Index", category="volume",
        description="Volume-weighted RSI analogue.",
        compute=volume.mfi, config_cls=volume.MFIConfig, input_kind="bars", outputs=["mfi"],
    ),
    "VWMA": IndicatorDefinition(
        id="VWMA", name="Volume Weighted Moving Average", category="volume",
        description="Trailing mean weighted by volume.",
        compute=volume.vwma, config_cls=volume.VWMAConfig, input_kind="bars", outputs=["vwma"],
    ),
}
