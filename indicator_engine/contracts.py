from __future__ import annotations

import numbers
from dataclasses import dataclass, fields
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Sequence, Type


class ValidationError(Exception):
    """Raised when a contract is violated."""


class IndicatorInputError(ValidationError):
    """입력 길이 불일치 등 경계(boundary) 계약 위반 시 발생."""


class CompositionError(Exception):
    """Raised when a composition graph cannot be built."""

    def __init__(self, message: str, reason: str = "INVALID_GRAPH", nodes: Optional[Sequence[str]] = None):
        super().__init__(message)
        self.reason = reason
        self.nodes = list(nodes or [])


class CompositionCycleError(CompositionError):
    """Raised when a node transitively depends on its own output."""

    def __init__(self, message: str, nodes: Sequence[str]):
        super().__init__(message, reason="CYCLE", nodes=nodes)


class CalculationError(Exception):
    """Raised when a result cannot be used as a composition input."""


class ResultShapeError(Exception):
    """IndicatorResult 길이/primary 불변식 위반 (구성 버그)."""


@dataclass
class ParamSpec:
    name: str
    param_type: str  # "float", "int", "categorical", "bool"
    min: Optional[float] = None
    max: Optional[float] = None
    choices: Optional[List[Any]] = None
    default: Optional[Any] = None
    enum_cls: Optional[Type[Enum]] = None

    def validate(self, value: Any) -> Any:
        if self.enum_cls is not None:
            if isinstance(value, self.enum_cls):
                return value
            try:
                return self.enum_cls(value)
            except ValueError as exc:
                allowed = [m.value for m in self.enum_cls]
                raise ValidationError(f"{self.name} must be one of {allowed}, got {value}") from exc

        if self.param_type == "categorical":
            if self.choices is None:
                raise ValidationError(f"{self.name} is categorical but no choices provided")
            if value not in self.choices:
                raise ValidationError(f"{self.name} must be one of {self.choices}, got {value}")
            return value

        if value is None:
            raise ValidationError(f"{self.name} requires a value")

        if self.param_type == "bool":
            if not isinstance(value, bool):
                raise ValidationError(f"{self.name} must be bool, got {type(value).__name__}")
            return value

        if self.param_type not in ("float", "int"):
            raise ValidationError(f"{self.name} has unsupported type {self.param_type}")

        # bool is an int subclass; reject it for numeric params
        if isinstance(value, bool):
            raise ValidationError(f"{self.name} must be {self.param_type}, got bool")
        # numpy 정수/실수 스칼라(np.int64 등)도 받고 파이썬 숫자로 정규화
        if self.param_type == "int":
            if not isinstance(value, numbers.Integral):
                raise ValidationError(f"{self.name} must be int, got {type(value).__name__}")
            value = int(value)
        elif not isinstance(value, numbers.Real):
            raise ValidationError(f"{self.name} must be float, got {type(value).__name__}")
        elif not isinstance(value, (int, float)):
            value = float(value)

        if self.min is not None and value < self.min:
            raise ValidationError(f"{self.name} below min {self.min}: {value}")
        if self.max is not None and value > self.max:
            raise ValidationError(f"{self.name} above max {self.max}: {value}")
        return value


@dataclass
class IndicatorConfig:
    """
    지표별 설정 레코드의 기반 클래스.
    하위 클래스는 PARAMS에 ParamSpec을 선언하고, 생성 시점에 한 번 검증된다.
    """

    PARAMS: ClassVar[List[ParamSpec]] = []

    def __post_init__(self) -> None:
        for spec in self.PARAMS:
            value = getattr(self, spec.name)
            # None defaults are resolved from config at call time
            if value is None and spec.default is None:
                continue
            setattr(self, spec.name, spec.validate(value))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "IndicatorConfig":
        data = dict(data or {})
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValidationError(f"{cls.__name__} got unknown params {unknown}")
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = value.value if isinstance(value, Enum) else value
        return out
