"""
BarSeries / InputSelector.

OHLCV 필드 배열(길이 N)을 정렬된 상태로 보관하고, 봉 하나의 OHLC만으로 계산되는
파생 가격 뷰(median/typical/weighted-close/full-typical)를 한 번만 계산해 읽기 전용으로 노출한다.
길이가 다른 필드는 생성 시점에 거부된다.
"""
from __future__ import annotations

import copy
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from indicator_engine.config import config
from indicator_engine.contracts import IndicatorInputError
from indicator_engine.shared.hashing import hash_dataframe
from indicator_engine.shared.logger import get_logger
from .rolling import WindowPolicy, rolling_max, rolling_min

logger = get_logger("indicator.series")


class InputName(str, Enum):
    CLOSE = "close"
    OPEN = "open"
    HIGH = "high"
    LOW = "low"
    VOLUME = "volume"
    MEDIAN_PRICE = "median_price"
    TYPICAL_PRICE = "typical_price"
    WEIGHTED_CLOSE = "weighted_close"
    FULL_TYPICAL_PRICE = "full_typical_price"


RAW_FIELDS = ("open", "high", "low", "close", "volume")


def _readonly(values: Iterable[float]) -> np.ndarray:
    arr = np.array(values, dtype=np.float64, copy=True)
    if arr.ndim != 1:
        raise IndicatorInputError(f"expected 1-d values, got shape {arr.shape}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True)
class Bar:
    open: float
    high: float
    low: float
    close: float
    volume: float = 0.0


@dataclass(frozen=True, eq=False)
class ComputedSeries:
    """이름 붙은 float64[N] 시리즈. 다른 지표의 입력(합성 엣지)이 될 수 있다."""

    name: str
    values: np.ndarray

    def __post_init__(self) -> None:
        object.__setattr__(self, "values", _readonly(self.values))

    def __len__(self) -> int:
        return len(self.values)

    def rename(self, name: str) -> "ComputedSeries":
        return ComputedSeries(name, self.values)

    def to_series(self, index: Optional[Sequence[Any]] = None) -> pd.Series:
        return pd.Series(self.values, index=index, name=self.name)


class BarSeries:
    """
    정렬된 OHLCV 시리즈.

    Args:
        open, high, low, close: 길이 N 배열
        volume: 생략 시 0 배열
        input_name: primary 입력으로 쓸 필드 (기본 config.DEFAULT_INPUT)
    """

    def __init__(
        self,
        open: Sequence[float],
        high: Sequence[float],
        low: Sequence[float],
        close: Sequence[float],
        volume: Optional[Sequence[float]] = None,
        input_name: InputName | str | None = None,
    ):
        if volume is None:
            volume = np.zeros(len(close), dtype=np.float64)
        lengths = {name: len(arr) for name, arr in zip(RAW_FIELDS, (open, high, low, close, volume))}
        if len(set(lengths.values())) > 1:
            logger.error(f"[BarSeries] Field length mismatch: {lengths}")
            raise IndicatorInputError(f"field lengths differ: {lengths}")

        o, h, l, c, v = (_readonly(arr) for arr in (open, high, low, close, volume))
        self._fields: Dict[InputName, np.ndarray] = {
            InputName.OPEN: o,
            InputName.HIGH: h,
            InputName.LOW: l,
            InputName.CLOSE: c,
            InputName.VOLUME: v,
            InputName.MEDIAN_PRICE: _readonly((h + l) / 2),
            InputName.TYPICAL_PRICE: _readonly((h + l + c) / 3),
            InputName.WEIGHTED_CLOSE: _readonly((h + l + 2 * c) / 4),
            InputName.FULL_TYPICAL_PRICE: _readonly((h + l + c + o) / 4),
        }
        self.input_name = InputName(input_name or config.DEFAULT_INPUT)
        self._primary: Optional[ComputedSeries] = None
        # 호출자가 입력을 직접 골랐는지 (with_input / with_primary / input_name 인자)
        self._input_selected = input_name is not None

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------
    @classmethod
    def from_bars(cls, bars: Sequence[Bar], input_name: InputName | str | None = None) -> "BarSeries":
        return cls(
            open=[b.open for b in bars],
            high=[b.high for b in bars],
            low=[b.low for b in bars],
            close=[b.close for b in bars],
            volume=[b.volume for b in bars],
            input_name=input_name,
        )

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, input_name: InputName | str | None = None) -> "BarSeries":
        """컬럼 이름은 대소문자를 구분하지 않는다. volume은 선택."""
        columns = {str(col).lower(): col for col in df.columns}
        missing = [name for name in RAW_FIELDS[:4] if name not in columns]
        if missing:
            raise IndicatorInputError(f"DataFrame missing columns {missing}")
        volume = df[columns["volume"]].to_numpy(dtype=np.float64) if "volume" in columns else None
        return cls(
            open=df[columns["open"]].to_numpy(dtype=np.float64),
            high=df[columns["high"]].to_numpy(dtype=np.float64),
            low=df[columns["low"]].to_numpy(dtype=np.float64),
            close=df[columns["close"]].to_numpy(dtype=np.float64),
            volume=volume,
            input_name=input_name,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------
    def __len__(self) -> int:
        return len(self._fields[InputName.CLOSE])

    @property
    def length(self) -> int:
        return len(self)

    @property
    def open(self) -> np.ndarray:
        return self._fields[InputName.OPEN]

    @property
    def high(self) -> np.ndarray:
        return self._fields[InputName.HIGH]

    @property
    def low(self) -> np.ndarray:
        return self._fields[InputName.LOW]

    @property
    def close(self) -> np.ndarray:
        return self._fields[InputName.CLOSE]

    @property
    def volume(self) -> np.ndarray:
        return self._fields[InputName.VOLUME]

    def field(self, name: InputName | str) -> np.ndarray:
        return self._fields[InputName(name)]

    def view(self, name: InputName | str) -> ComputedSeries:
        key = InputName(name)
        return ComputedSeries(key.value, self._fields[key])

    @property
    def primary(self) -> ComputedSeries:
        if self._primary is not None:
            return self._primary
        return self.view(self.input_name)

    def price_input(self, default: InputName | str) -> np.ndarray:
        """입력을 직접 고른 경우 primary, 아니면 지표 기본 필드(default)."""
        return self.primary.values if self._input_selected else self.field(default)

    def input_range(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        primary 입력에 맞는 (high, low).

        봉 i에서 primary가 가격 스케일이 아니면 (지금까지 거래량과 같았거나, 누적합이
        저가 누적합보다 작거나 고가 누적합보다 크면) OHLC의 high/low 대신 primary의 2봉 max/min을 쓴다.
        RSI 같은 오실레이터를 Stochastic/ATR에 합성할 때 가격 범위로 잘리지 않게 한다.
        판정은 i까지의 누적값만 본다 (인과적).
        """
        values = self.primary.values
        total = np.cumsum(values)
        own_range = (
            np.logical_and.accumulate(values == self.volume)
            | (total < np.cumsum(self.low))
            | (total > np.cumsum(self.high))
        )
        if not own_range.any():
            return self.high, self.low
        return (
            np.where(own_range, rolling_max(values, 2, WindowPolicy.PARTIAL), self.high),
            np.where(own_range, rolling_min(values, 2, WindowPolicy.PARTIAL), self.low),
        )

    # ------------------------------------------------------------------
    # Derivation (never mutates self)
    # ------------------------------------------------------------------
    def with_input(self, name: InputName | str) -> "BarSeries":
        clone = copy.copy(self)
        clone.input_name = InputName(name)
        clone._primary = None
        clone._input_selected = True
        return clone

    def with_primary(self, series: ComputedSeries) -> "BarSeries":
        """OHLCV는 그대로 두고 primary 입력만 계산된 시리즈로 바꾼 새 BarSeries."""
        if len(series) != len(self):
            raise IndicatorInputError(f"primary length {len(series)} not {len(self)}")
        clone = copy.copy(self)
        clone._primary = series
        clone._input_selected = True
        return clone

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame({name.value: values for name, values in self._fields.items()})

    def fingerprint(self) -> str:
        return hash_dataframe(self.to_frame())

    def __repr__(self) -> str:
        return f"BarSeries(n={len(self)}, input={self.primary.name})"


def as_input(source: Any, name: str = "input") -> ComputedSeries:
    """
    지표 입력 정규화: ComputedSeries, primary를 가진 객체(BarSeries/IndicatorResult),
    또는 배열을 ComputedSeries로 바꾼다.
    """
    if isinstance(source, ComputedSeries):
        return source
    primary = getattr(source, "primary", None)
    if isinstance(primary, ComputedSeries):
        return primary
    return ComputedSeries(name, source)
