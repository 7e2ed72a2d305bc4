"""
RollingWindowStatistics - 인과적(causal) 이동 윈도우 통계.

윈도우는 항상 인덱스 i에서 끝나며 i 이후 값을 보지 않는다.
전체 배열 계산은 증분 구조를 사용해 시리즈당 O(N):
- Max/Min: 단조 deque
- Sum/Average: Neumaier 보정 누적합 (만료 샘플은 보정 뺄셈)
- StdDev(모집단): Welford 증분 분산 (add/remove)

워밍업 정책 (호출 지점마다 선택):
- PARTIAL: i+1 < length 이면 존재하는 i+1개 샘플만 사용
- ZERO_FILL: 없는 과거를 0 샘플로 간주해 항상 length개 샘플로 계산
"""
from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Deque, Optional, Sequence, Tuple

import numpy as np

from indicator_engine.config import config
from indicator_engine.contracts import ValidationError
from indicator_engine.shared.numeric import finite_or, nan_to_fallback
from .helpers import as_float_array


class WindowPolicy(str, Enum):
    PARTIAL = "partial"
    ZERO_FILL = "zero_fill"


def resolve_policy(policy: WindowPolicy | str | None) -> WindowPolicy:
    try:
        return WindowPolicy(policy or config.DEFAULT_WINDOW_POLICY)
    except ValueError as exc:
        raise ValidationError(f"unknown window policy {policy!r}") from exc


@dataclass(frozen=True)
class WindowSpec:
    length: int
    policy: WindowPolicy = WindowPolicy.PARTIAL

    def __post_init__(self) -> None:
        if isinstance(self.length, bool) or not isinstance(self.length, (int, np.integer)) or self.length < 1:
            raise ValidationError(f"window length must be a positive int, got {self.length!r}")
        object.__setattr__(self, "length", int(self.length))
        object.__setattr__(self, "policy", resolve_policy(self.policy))

    @classmethod
    def of(cls, length: int, policy: WindowPolicy | str | None = None) -> "WindowSpec":
        return cls(length, resolve_policy(policy))

    @property
    def prefill(self) -> int:
        """ZERO_FILL일 때 앞에 채워 넣는 0 샘플 수."""
        return self.length - 1 if self.policy is WindowPolicy.ZERO_FILL else 0


# ============================================
# Incremental structures
# ============================================
class MonotonicWindow:
    """슬라이딩 max(또는 min). push당 분할상환 O(1)."""

    def __init__(self, length: int, mode: str = "max"):
        if mode not in ("max", "min"):
            raise ValidationError(f"mode must be 'max' or 'min', got {mode}")
        self.length = length
        self._is_max = mode == "max"
        self._items: Deque[Tuple[int, float]] = deque()
        self._index = -1

    def push(self, value: float) -> float:
        self._index += 1
        items = self._items
        if self._is_max:
            while items and items[-1][1] <= value:
                items.pop()
        else:
            while items and items[-1][1] >= value:
                items.pop()
        items.append((self._index, value))
        if items[0][0] <= self._index - self.length:
            items.popleft()
        return items[0][1]

    @property
    def value(self) -> float:
        return self._items[0][1] if self._items else 0.0


class RunningSum:
    """Neumaier 보정 합. remove(x)는 add(-x)와 같다."""

    def __init__(self):
        self._sum = 0.0
        self._comp = 0.0

    def add(self, value: float) -> None:
        total = self._sum + value
        if abs(self._sum) >= abs(value):
            self._comp += (self._sum - total) + value
        else:
            self._comp += (value - total) + self._sum
        self._sum = total

    def remove(self, value: float) -> None:
        self.add(-value)

    @property
    def value(self) -> float:
        return self._sum + self._comp


class RunningMoments:
    """Welford 증분 평균/분산. 만료 샘플은 역 Welford 갱신으로 제거한다."""

    def __init__(self):
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0

    def add(self, value: float) -> None:
        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)

    def remove(self, value: float) -> None:
        if self.count <= 1:
            self.count, self.mean, self._m2 = 0, 0.0, 0.0
            return
        old_mean = self.mean
        self.count -= 1
        self.mean = old_mean - (value - old_mean) / self.count
        self._m2 -= (value - old_mean) * (value - self.mean)
        # rounding can push m2 slightly negative
        if self._m2 < 0:
            self._m2 = 0.0

    @property
    def variance(self) -> float:
        return self._m2 / self.count if self.count else 0.0

    @property
    def std(self) -> float:
        return math.sqrt(self.variance)


class RollingWindow:
    """
    단일 시리즈용 스트리밍 윈도우. push(value) 후 max/min/sum/average/std를 조회한다.
    상태는 이 인스턴스만 소유하며 다른 평가와 공유하지 않는다.
    """

    def __init__(self, spec: WindowSpec):
        self.spec = spec
        self._buffer: Deque[float] = deque()
        self._max = MonotonicWindow(spec.length, "max")
        self._min = MonotonicWindow(spec.length, "min")
        self._sum = RunningSum()
        self._moments = RunningMoments()
        for _ in range(spec.prefill):
            self._push(0.0)

    def _push(self, value: float) -> None:
        self._buffer.append(value)
        self._max.push(value)
        self._min.push(value)
        self._sum.add(value)
        self._moments.add(value)
        if len(self._buffer) > self.spec.length:
            expired = self._buffer.popleft()
            self._sum.remove(expired)
            self._moments.remove(expired)

    def push(self, value: float) -> "RollingWindow":
        self._push(finite_or(float(value)))
        return self

    @property
    def count(self) -> int:
        return len(self._buffer)

    @property
    def max(self) -> float:
        return self._max.value

    @property
    def min(self) -> float:
        return self._min.value

    @property
    def sum(self) -> float:
        return self._sum.value

    @property
    def average(self) -> float:
        return self._sum.value / self.count if self.count else 0.0

    @property
    def std(self) -> float:
        return self._moments.std


# ============================================
# Full-array operations, O(N)
# ============================================
def _spec(length: int, policy: WindowPolicy | str | None) -> WindowSpec:
    return WindowSpec.of(length, policy)


def _finite_samples(values: Sequence[float]) -> np.ndarray:
    # NaN/inf 샘플은 fallback으로 바꿔 넣는다. 러닝 합/모멘트는 한 번 NaN이 들어가면 회복하지 못한다.
    return nan_to_fallback(as_float_array(values))


def _extreme(values: Sequence[float], length: int, policy, mode: str) -> np.ndarray:
    spec = _spec(length, policy)
    arr = _finite_samples(values)
    window = MonotonicWindow(spec.length, mode)
    for _ in range(spec.prefill):
        window.push(0.0)
    out = np.empty(len(arr), dtype=np.float64)
    for i, v in enumerate(arr):
        out[i] = window.push(v)
    return out


def rolling_max(values: Sequence[float], length: int, policy: WindowPolicy | str | None = None) -> np.ndarray:
    return _extreme(values, length, policy, "max")


def rolling_min(values: Sequence[float], length: int, policy: WindowPolicy | str | None = None) -> np.ndarray:
    return _extreme(values, length, policy, "min")


def _sums(values: Sequence[float], spec: WindowSpec) -> Tuple[np.ndarray, np.ndarray]:
    """(윈도우 합, 윈도우 샘플 수). 0 prefill은 합에 영향이 없어 개수로만 반영한다."""
    arr = _finite_samples(values)
    running = RunningSum()
    sums = np.empty(len(arr), dtype=np.float64)
    counts = np.empty(len(arr), dtype=np.float64)
    for i, v in enumerate(arr):
        running.add(v)
        if i >= spec.length:
            running.remove(arr[i - spec.length])
        sums[i] = running.value
        counts[i] = spec.length if spec.policy is WindowPolicy.ZERO_FILL else min(i + 1, spec.length)
    return sums, counts


def rolling_sum(values: Sequence[float], length: int, policy: WindowPolicy | str | None = None) -> np.ndarray:
    sums, _ = _sums(values, _spec(length, policy))
    return sums


def rolling_average(values: Sequence[float], length: int, policy: WindowPolicy | str | None = None) -> np.ndarray:
    sums, counts = _sums(values, _spec(length, policy))
    return sums / counts if len(sums) else sums


def rolling_std(values: Sequence[float], length: int, policy: WindowPolicy | str | None = None) -> np.ndarray:
    """모집단 표준편차 (ddof=0)."""
    spec = _spec(length, policy)
    arr = _finite_samples(values)
    moments = RunningMoments()
    padded = np.concatenate([np.zeros(spec.prefill), arr])
    for v in padded[: spec.prefill]:
        moments.add(v)
    out = np.empty(len(arr), dtype=np.float64)
    for i, v in enumerate(arr):
        j = i + spec.prefill
        moments.add(v)
        if j >= spec.length:
            moments.remove(padded[j - spec.length])
        out[i] = moments.std
    return out


# ============================================
# Point queries: Max(series, window, i) ...
# ============================================
def window_samples(values: Sequence[float], length: int, i: int,
                   policy: WindowPolicy | str | None = None) -> np.ndarray:
    """인덱스 i에서 끝나는 윈도우의 샘플. ZERO_FILL이면 부족분을 앞쪽 0으로 채운다."""
    spec = _spec(length, policy)
    arr = _finite_samples(values)
    if not 0 <= i < len(arr):
        raise IndexError(f"index {i} outside series of length {len(arr)}")
    start = max(0, i + 1 - spec.length)
    samples = arr[start: i + 1]
    missing = spec.length - len(samples)
    if spec.policy is WindowPolicy.ZERO_FILL and missing > 0:
        samples = np.concatenate([np.zeros(missing), samples])
    return samples


def window_max(values: Sequence[float], length: int, i: int, policy: WindowPolicy | str | None = None) -> float:
    return float(np.max(window_samples(values, length, i, policy)))


def window_min(values: Sequence[float], length: int, i: int, policy: WindowPolicy | str | None = None) -> float:
    return float(np.min(window_samples(values, length, i, policy)))


def window_sum(values: Sequence[float], length: int, i: int, policy: WindowPolicy | str | None = None) -> float:
    return math.fsum(window_samples(values, length, i, policy))


def window_average(values: Sequence[float], length: int, i: int, policy: WindowPolicy | str | None = None) -> float:
    samples = window_samples(values, length, i, policy)
    return math.fsum(samples) / len(samples)


def window_std(values: Sequence[float], length: int, i: int, policy: WindowPolicy | str | None = None) -> float:
    samples = window_samples(values, length, i, policy)
    return float(np.std(samples, ddof=0))


def rolling_stats(values: Sequence[float], spec: Optional[WindowSpec] = None, length: int = 20,
                  policy: WindowPolicy | str | None = None) -> dict:
    """한 번의 패스로 max/min/sum/average/std 전부를 계산."""
    spec = spec or _spec(length, policy)
    arr = _finite_samples(values)
    window = RollingWindow(spec)
    out = {key: np.empty(len(arr), dtype=np.float64) for key in ("max", "min", "sum", "average", "std")}
    for i, v in enumerate(arr):
        window.push(v)
        out["max"][i] = window.max
        out["min"][i] = window.min
        out["sum"][i] = window.sum
        out["average"][i] = window.average
        out["std"][i] = window.std
    return out
