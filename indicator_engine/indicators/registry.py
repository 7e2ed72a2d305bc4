"""
Indicator Registry - 싱글톤 패턴 적용

사용 가능한 모든 지표 정의의 중앙 저장소입니다.
CompositionGraph는 노드의 indicator id를 이 레지스트리로 해석합니다.

사용법:
    from indicator_engine.indicators.registry import get_registry
    registry = get_registry()  # 항상 동일한 인스턴스 반환
"""
from threading import Lock
from typing import Any, Dict, List, Optional

from indicator_engine.config import config
from indicator_engine.contracts import CalculationError, CompositionError, ValidationError
from indicator_engine.shared.logger import get_logger
from .definitions import INDICATOR_UNIVERSE, INPUT_KINDS, IndicatorDefinition
from .result import IndicatorResult
from .series import BarSeries

logger = get_logger("indicator.registry")

# ============================================
# Singleton Instance Holder
# ============================================
_registry_instance: Optional["IndicatorRegistry"] = None
_registry_lock = Lock()


def get_registry() -> "IndicatorRegistry":
    """
    IndicatorRegistry 싱글톤 인스턴스를 반환합니다.

    Example:
        >>> registry = get_registry()
        >>> definition = registry.get("RSI")
    """
    global _registry_instance

    if _registry_instance is None:
        with _registry_lock:
            # Double-checked locking
            if _registry_instance is None:
                _registry_instance = IndicatorRegistry()
                _registry_instance.initialize()
                logger.info(f"[Singleton] IndicatorRegistry initialized with {len(_registry_instance)} indicators")

    return _registry_instance


def inject_registry(registry: "IndicatorRegistry") -> None:
    """이미 구성된 IndicatorRegistry 인스턴스를 싱글톤으로 강제 주입합니다."""
    global _registry_instance
    with _registry_lock:
        _registry_instance = registry
        logger.debug("[Singleton] IndicatorRegistry instance injected.")


def reset_registry() -> None:
    """
    테스트 목적으로 싱글톤 인스턴스를 리셋합니다.
    프로덕션에서는 사용하지 마세요.
    """
    global _registry_instance
    with _registry_lock:
        _registry_instance = None
        logger.warning("[Singleton] IndicatorRegistry instance reset. Use only for testing.")


class IndicatorRegistry:
    """
    id -> IndicatorDefinition 매핑. 등록/조회는 Lock으로 보호된다.
    직접 인스턴스화하기보다 get_registry()를 사용하세요.
    """

    def __init__(self):
        self._definitions: Dict[str, IndicatorDefinition] = {}
        self._lock = Lock()
        self._loaded = False

    def initialize(self) -> None:
        """기본 지표 유니버스를 적재한다."""
        with self._lock:
            if self._loaded:
                return
            self._definitions.update(INDICATOR_UNIVERSE)
            self._loaded = True

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, indicator_id: str) -> bool:
        return indicator_id.upper() in self._definitions

    def register(self, definition: IndicatorDefinition, overwrite: bool = False) -> None:
        if definition.input_kind not in INPUT_KINDS:
            raise ValidationError(f"{definition.id}: input_kind must be one of {INPUT_KINDS}")
        key = definition.id.upper()
        with self._lock:
            if not overwrite and key in self._definitions:
                msg = f"Indicator {definition.id} already exists."
                if config.STRICT_MODE:
                    logger.error(f"  REJECTED: {msg}")
                raise ValidationError(msg)
            self._definitions[key] = definition
        logger.info(f"Registered indicator: {definition.id} ({definition.name})")

    def get(self, indicator_id: str) -> IndicatorDefinition:
        if not self._loaded:
            self.initialize()
        definition = self._definitions.get(indicator_id.upper())
        if definition is None:
            raise CompositionError(f"unknown indicator '{indicator_id}'", reason="UNKNOWN_INDICATOR")
        return definition

    def list_all(self) -> List[IndicatorDefinition]:
        if not self._loaded:
            self.initialize()
        return list(self._definitions.values())

    def list_by_category(self, category: str) -> List[IndicatorDefinition]:
        return [d for d in self.list_all() if d.category == category]

    def invoke(self, indicator_id: str, source: Any, params: Optional[Dict[str, Any]] = None,
               benchmark: Any = None) -> IndicatorResult:
        """
        지표를 실행한다. source 종류는 정의의 input_kind를 따른다:
        "bars"는 BarSeries, "pair"는 benchmark 필수, "series"는 아무 입력.
        """
        definition = self.get(indicator_id)
        cfg = definition.make_config(params)
        if definition.input_kind == "bars":
            if not isinstance(source, BarSeries):
                raise CalculationError(f"{definition.id} needs a BarSeries input, got {type(source).__name__}")
            return definition.compute(source, cfg)
        if definition.input_kind == "pair":
            if benchmark is None:
                raise CalculationError(f"{definition.id} needs a benchmark series")
            return definition.compute(source, benchmark, cfg)
        return definition.compute(source, cfg)
