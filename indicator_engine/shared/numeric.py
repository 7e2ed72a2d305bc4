"""
수치 안전 연산.

0으로 나누기, 음수 로그/제곱근, 오버플로우 등의 퇴화 케이스는 예외가 아니다.
각 지점마다 고정된 폴백 값(기본 0)을 돌려주며, 하위 신호 임계값이 이 값에 맞춰져 있으므로
NaN/Inf로 "고치지" 않는다.
"""
from __future__ import annotations

import math
import sys
from typing import Sequence

import numpy as np

from indicator_engine.config import config

FLOAT_MAX = sys.float_info.max


def finite_or(value: float, fallback: float | None = None) -> float:
    if fallback is None:
        fallback = config.NUMERIC_FALLBACK
    return value if math.isfinite(value) else fallback


def safe_divide(numerator: float, denominator: float, fallback: float | None = None) -> float:
    if fallback is None:
        fallback = config.NUMERIC_FALLBACK
    if denominator == 0:
        return fallback
    return finite_or(numerator / denominator, fallback)


def safe_log(value: float) -> float:
    return math.log(value) if value > 0 else 0.0


def safe_log10(value: float) -> float:
    return math.log10(value) if value > 0 else 0.0


def safe_sqrt(value: float) -> float:
    return math.sqrt(value) if value >= 0 else 0.0


def safe_pow(value: float, exponent: float) -> float:
    try:
        result = math.pow(value, exponent)
    except OverflowError:
        return FLOAT_MAX
    except ValueError:
        # negative base with fractional exponent
        return 0.0
    if math.isinf(result):
        return FLOAT_MAX if result > 0 else -FLOAT_MAX
    return result


def safe_exp(value: float) -> float:
    return math.exp(min(config.EXP_CAP, value))


def min_or_max(value: float, max_value: float, min_value: float) -> float:
    return min(max(value, min_value), max_value)


def clamp_length(length: int) -> int:
    return int(min_or_max(length, config.LENGTH_MAX, config.LENGTH_MIN))


def clamp_alpha(alpha: float) -> float:
    return min_or_max(alpha, config.EMA_ALPHA_MAX, config.EMA_ALPHA_MIN)


def percent_change(current: float, previous: float) -> float:
    return safe_divide(current - previous, previous) * 100


def rescale_value(value: float, max_value: float, min_value: float, new_max: float = 100.0,
                  new_min: float = 0.0) -> float:
    ratio = safe_divide(new_max - new_min, max_value - min_value)
    return (value - min_value) * ratio + new_min


def nan_to_fallback(values: np.ndarray, fallback: float | None = None) -> np.ndarray:
    if fallback is None:
        fallback = config.NUMERIC_FALLBACK
    arr = np.asarray(values, dtype=np.float64)
    return np.where(np.isfinite(arr), arr, fallback)


def safe_divide_array(numerator: Sequence[float] | np.ndarray, denominator: Sequence[float] | np.ndarray,
                      fallback: float | None = None) -> np.ndarray:
    if fallback is None:
        fallback = config.NUMERIC_FALLBACK
    num = np.asarray(numerator, dtype=np.float64)
    den = np.asarray(denominator, dtype=np.float64)
    out = np.full(np.broadcast(num, den).shape, fallback, dtype=np.float64)
    with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
        np.divide(num, den, out=out, where=den != 0)
    return nan_to_fallback(out, fallback)
