"""
RecursiveFilterEngine - 상태를 가진 재귀(피드백) 필터.

계약: step(input_i, state) -> (output_i, new_state)

시드 정책은 필터 타입마다 고정되어 있다 (인스턴스마다 바꾸지 않는다):

    ExponentialFilter      FIRST_INPUT
    AdaptiveFilter (KAMA)  FIRST_INPUT
    WilderFilter           ZERO
    SecondOrderFilter      ZERO
    SuperSmootherFilter    ZERO
    CascadedFilter         각 단계 필터의 정책을 따름

FIRST_INPUT: 첫 스텝에서 모든 피드백/입력 슬롯을 첫 입력 값으로 채운 뒤 식을 적용.
ZERO: 모든 슬롯을 0으로 채운 뒤 식을 적용.

필터는 예외를 던지지 않는다. 비유한(NaN/Inf) 입력/출력은 config.NUMERIC_FALLBACK(0)으로 대체된다.
같은 입력에 대해 run()은 항상 비트 단위로 동일한 결과를 낸다.
"""
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, List, Optional, Sequence, Tuple

import numpy as np

from indicator_engine.contracts import ValidationError
from indicator_engine.shared.numeric import clamp_alpha, finite_or
from .helpers import as_float_array, check_same_length


class SeedPolicy(str, Enum):
    FIRST_INPUT = "first_input"
    ZERO = "zero"


@dataclass(frozen=True)
class FilterState:
    """
    seed: 시드 값
    feedback: (output_{i-1}, output_{i-2}, ...)
    inputs: (input_{i-1}, ...) - 입력 지연이 필요한 필터만 사용
    """
    seed: float
    feedback: Tuple[float, ...]
    inputs: Tuple[float, ...] = ()
    steps: int = 0


class RecursiveFilter(ABC):
    seed_policy: ClassVar[SeedPolicy]
    order: ClassVar[int] = 1
    input_lags: ClassVar[int] = 0

    def initial_state(self, first_input: float) -> FilterState:
        seed = first_input if self.seed_policy is SeedPolicy.FIRST_INPUT else 0.0
        return FilterState(seed, (seed,) * self.order, (seed,) * self.input_lags, 0)

    @abstractmethod
    def _compute(self, value: float, state: FilterState, aux: Optional[float]) -> float:
        ...

    def step(self, value: float, state: Optional[FilterState] = None,
             aux: Optional[float] = None) -> Tuple[float, FilterState]:
        value = finite_or(float(value))
        if state is None:
            state = self.initial_state(value)
        output = finite_or(self._compute(value, state, aux))
        new_state = FilterState(
            seed=state.seed,
            feedback=(output,) + state.feedback[:-1],
            inputs=((value,) + state.inputs[:-1]) if self.input_lags else (),
            steps=state.steps + 1,
        )
        return output, new_state

    def run(self, values: Sequence[float], aux: Optional[Sequence[float]] = None) -> np.ndarray:
        arr = as_float_array(values)
        aux_arr = None
        if aux is not None:
            aux_arr = as_float_array(aux)
            check_same_length(arr, aux_arr)
        out = np.empty(len(arr), dtype=np.float64)
        state: Optional[FilterState] = None
        for i, v in enumerate(arr):
            out[i], state = self.step(v, state, None if aux_arr is None else aux_arr[i])
        return out


class FirstOrderFilter(RecursiveFilter):
    """output_i = alpha_i * input_i + (1 - alpha_i) * output_{i-1}"""

    @abstractmethod
    def alpha(self, aux: Optional[float]) -> float:
        ...

    def _compute(self, value: float, state: FilterState, aux: Optional[float]) -> float:
        a = self.alpha(aux)
        return a * value + (1 - a) * state.feedback[0]


class ExponentialFilter(FirstOrderFilter):
    """EMA. alpha를 직접 주거나 length로 2/(length+1). [0.01, 0.99]로 클램프."""

    seed_policy = SeedPolicy.FIRST_INPUT

    def __init__(self, alpha: Optional[float] = None, length: Optional[int] = None):
        if alpha is None:
            if length is None or length < 1:
                raise ValidationError("ExponentialFilter needs alpha or a positive length")
            alpha = 2 / (length + 1)
        self._alpha = clamp_alpha(alpha)

    def alpha(self, aux: Optional[float]) -> float:
        return self._alpha


class WilderFilter(FirstOrderFilter):
    """Wilder 평활 (alpha = 1/length). 0에서 시작한다."""

    seed_policy = SeedPolicy.ZERO

    def __init__(self, length: int):
        if length < 1:
            raise ValidationError(f"WilderFilter length must be >= 1, got {length}")
        self._alpha = 1 / length

    def alpha(self, aux: Optional[float]) -> float:
        return self._alpha


class AdaptiveFilter(FirstOrderFilter):
    """
    Kaufman 적응 필터.
    alpha_i = (ER_i * (fast - slow) + slow)^2, ER은 별도로 계산된 효율비 시리즈 (aux).
    """

    seed_policy = SeedPolicy.FIRST_INPUT

    def __init__(self, fast_length: int = 2, slow_length: int = 30):
        if fast_length < 1 or slow_length < 1:
            raise ValidationError("AdaptiveFilter lengths must be >= 1")
        self.fast_alpha = 2 / (fast_length + 1)
        self.slow_alpha = 2 / (slow_length + 1)

    def alpha(self, aux: Optional[float]) -> float:
        er = finite_or(aux if aux is not None else 0.0)
        return (er * (self.fast_alpha - self.slow_alpha) + self.slow_alpha) ** 2


class SecondOrderFilter(RecursiveFilter):
    """
    output_i = c1 * x_i + c2 * output_{i-1} + c3 * output_{i-2}
    average_inputs=True 이면 x_i = (input_i + input_{i-1}) / 2.
    """

    seed_policy = SeedPolicy.ZERO
    order = 2
    input_lags = 1

    def __init__(self, c1: float, c2: float, c3: float, average_inputs: bool = True):
        self.c1, self.c2, self.c3 = c1, c2, c3
        self.average_inputs = average_inputs

    def _compute(self, value: float, state: FilterState, aux: Optional[float]) -> float:
        x = (value + state.inputs[0]) / 2 if self.average_inputs else value
        return self.c1 * x + self.c2 * state.feedback[0] + self.c3 * state.feedback[1]


class SuperSmootherFilter(SecondOrderFilter):
    """Ehlers 2-pole super smoother."""

    def __init__(self, length: int = 10):
        if length < 1:
            raise ValidationError(f"SuperSmootherFilter length must be >= 1, got {length}")
        a1 = math.exp(-1.414 * math.pi / length)
        b1 = 2 * a1 * math.cos(1.414 * math.pi / length)
        c2 = b1
        c3 = -a1 * a1
        super().__init__(1 - c2 - c3, c2, c3, average_inputs=True)


@dataclass(frozen=True)
class CascadeState:
    stages: Tuple[Optional[FilterState], ...]


class CascadedFilter:
    """
    같은(또는 다른) 필터를 자기 출력에 반복 적용. 각 단계는 독립된 상태를 가진다.
    """

    def __init__(self, stages: Sequence[RecursiveFilter]):
        if not stages:
            raise ValidationError("CascadedFilter needs at least one stage")
        self.stages: List[RecursiveFilter] = list(stages)

    @classmethod
    def repeat(cls, factory, depth: int) -> "CascadedFilter":
        return cls([factory() for _ in range(depth)])

    def step_all(self, value: float, state: Optional[CascadeState] = None) -> Tuple[Tuple[float, ...], CascadeState]:
        prior = state.stages if state is not None else (None,) * len(self.stages)
        outputs: List[float] = []
        new_states: List[FilterState] = []
        x = value
        for stage, stage_state in zip(self.stages, prior):
            x, new_state = stage.step(x, stage_state)
            outputs.append(x)
            new_states.append(new_state)
        return tuple(outputs), CascadeState(tuple(new_states))

    def step(self, value: float, state: Optional[CascadeState] = None) -> Tuple[float, CascadeState]:
        outputs, new_state = self.step_all(value, state)
        return outputs[-1], new_state

    def run_stages(self, values: Sequence[float]) -> List[np.ndarray]:
        arr = as_float_array(values)
        out = [np.empty(len(arr), dtype=np.float64) for _ in self.stages]
        state: Optional[CascadeState] = None
        for i, v in enumerate(arr):
            outputs, state = self.step_all(v, state)
            for k, o in enumerate(outputs):
                out[k][i] = o
        return out

    def run(self, values: Sequence[float]) -> np.ndarray:
        return self.run_stages(values)[-1]
