"""
SignalClassifier - 수치 결과를 {Buy, Sell, Neutral}로 분류하는 순수 함수 모음.

"이전" 값은 호출자가 명시적으로 넘긴다. 같은 인자 -> 항상 같은 Signal.
두 조건이 동시에 참일 수 있는 경우 먼저 검사하는 쪽(매수)이 이긴다.
"""
from __future__ import annotations

from enum import Enum
from typing import Callable, Sequence, Tuple

import numpy as np

from .helpers import as_float_array, check_same_length, previous


class Signal(str, Enum):
    BUY = "buy"
    SELL = "sell"
    NEUTRAL = "neutral"


def compare_signal(delta: float, prev_delta: float, bullish_bias: bool = False,
                   is_reversed: bool = False) -> Signal:
    """
    Buy if delta > 0, Sell if delta < 0.
    delta == 0 -> Buy when bullish_bias, else Neutral. is_reversed swaps the directions.
    prev_delta is accepted for call-site symmetry but does not affect the result.
    """
    if delta > 0:
        return Signal.SELL if is_reversed else Signal.BUY
    if delta < 0:
        return Signal.BUY if is_reversed else Signal.SELL
    # delta == 0 (or NaN)
    return Signal.BUY if bullish_bias else Signal.NEUTRAL


def rsi_signal(delta_fast: float, delta_slow: float, value: float, prev_value: float,
               overbought: float = 70, oversold: float = 30) -> Signal:
    if prev_value >= overbought > value and delta_fast < 0 and delta_slow < 0:
        return Signal.SELL
    if prev_value <= oversold < value and delta_fast > 0 and delta_slow > 0:
        return Signal.BUY
    return compare_signal(delta_fast, delta_slow)


def bullish_bearish_signal(bull: float, prev_bull: float, bear: float, prev_bear: float,
                           is_reversed: bool = False) -> Signal:
    """강세 레그가 먼저 검사된다: 양쪽 모두 확인되면 Buy."""
    bull_confirmed = bull < 0 if is_reversed else bull > 0
    bear_confirmed = bear > 0 if is_reversed else bear < 0
    if bull_confirmed:
        return Signal.BUY
    if bear_confirmed:
        return Signal.SELL
    return Signal.NEUTRAL


def volatility_signal(delta: float, prev_delta: float, volatility_metric: float, threshold: float) -> Signal:
    """저변동성 구간(metric < threshold)에서는 방향 신호를 Neutral로 억제."""
    if volatility_metric < threshold:
        return Signal.NEUTRAL
    return compare_signal(delta, prev_delta)


def condition_signal(buy_cond: bool, sell_cond: bool) -> Signal:
    if buy_cond:
        return Signal.BUY
    if sell_cond:
        return Signal.SELL
    return Signal.NEUTRAL


def bollinger_bands_signal(delta: float, prev_delta: float, value: float, prev_value: float,
                           upper: float, prev_upper: float, lower: float, prev_lower: float) -> Signal:
    """
    delta: 가격 - 중심선 (이동평균 교차).
    Buy: 중심선 위 또는 하단 밴드를 아래에서 위로 재진입.
    Sell: 중심선 아래 또는 상단 밴드를 위에서 아래로 재진입.
    """
    return condition_signal(
        delta > 0 or (prev_value < prev_lower and value > lower),
        delta < 0 or (prev_value > prev_upper and value < upper),
    )


# ============================================
# Per-bar helpers
# ============================================
def classify(fn: Callable[..., Signal], *columns: Sequence[float]) -> Tuple[Signal, ...]:
    """열 배열들을 봉 단위로 fn에 넘겨 Signal 시퀀스를 만든다."""
    check_same_length(*columns)
    if not columns:
        return ()
    return tuple(fn(*row) for row in zip(*(np.asarray(c).tolist() for c in columns)))


def compare_signals(deltas: Sequence[float], bullish_bias: bool = False,
                    is_reversed: bool = False) -> Tuple[Signal, ...]:
    arr = as_float_array(deltas)
    prev = previous(arr)
    return tuple(
        compare_signal(d, p, bullish_bias=bullish_bias, is_reversed=is_reversed)
        for d, p in zip(arr.tolist(), prev.tolist())
    )


def crossover_signals(values: Sequence[float], reference: Sequence[float]) -> Tuple[Signal, ...]:
    """단일 라인 지표의 기본 신호: compare(value - ma, prev_value - prev_ma)."""
    check_same_length(values, reference)
    return compare_signals(as_float_array(values) - as_float_array(reference))
