"""
숫자 배열 유틸리티.
모든 함수는 float64 numpy 배열을 돌려주며 입력을 변경하지 않는다.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, Sequence, Type, TypeVar

import numpy as np

from indicator_engine.contracts import IndicatorConfig, IndicatorInputError, ValidationError

C = TypeVar("C", bound=IndicatorConfig)


def check_same_length(*arrays: Sequence[float]) -> None:
    if not arrays:
        return
    length = len(arrays[0])
    for idx, arr in enumerate(arrays[1:], start=1):
        if len(arr) != length:
            raise IndicatorInputError(f"values length at {idx} not {length}")


def as_float_array(values: Iterable[float]) -> np.ndarray:
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1:
        raise IndicatorInputError(f"expected 1-d values, got shape {arr.shape}")
    return arr


def shift_right_and_fill_by(n: int, fill: float, values: Sequence[float]) -> np.ndarray:
    arr = as_float_array(values)
    out = np.full(arr.shape, fill, dtype=np.float64)
    if n < len(arr):
        out[n:] = arr[: len(arr) - n]
    return out


def shift_right_by(n: int, values: Sequence[float]) -> np.ndarray:
    return shift_right_and_fill_by(n, 0.0, values)


def previous(values: Sequence[float], n: int = 1) -> np.ndarray:
    """n봉 전 값. 이력이 없는 앞쪽 n개는 0."""
    return shift_right_by(n, values)


def changes(n: int, values: Sequence[float]) -> np.ndarray:
    """values[i] - values[i-n]. 이력이 부족한 앞쪽 n개는 0 (변화 없음)."""
    arr = as_float_array(values)
    out = arr - shift_right_by(n, arr)
    out[: min(n, len(out))] = 0.0
    return out


def abs_values(values: Sequence[float]) -> np.ndarray:
    return np.abs(as_float_array(values))


def max_rows(*values: Sequence[float]) -> np.ndarray:
    check_same_length(*values)
    return np.max(np.vstack([as_float_array(v) for v in values]), axis=0)


def round_digits_all(digits: int, values: Sequence[float]) -> np.ndarray:
    return np.round(as_float_array(values), digits)


def resolve_config(config: C | Dict[str, Any] | None, config_cls: Type[C]) -> C:
    """XConfig 인스턴스, dict, None 중 무엇을 받아도 검증된 XConfig를 돌려준다."""
    if isinstance(config, config_cls):
        return config
    if config is None or isinstance(config, dict):
        return config_cls.from_dict(config)
    raise ValidationError(f"expected {config_cls.__name__} or dict, got {type(config).__name__}")
