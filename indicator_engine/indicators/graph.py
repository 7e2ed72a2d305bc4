"""
CompositionGraph - 지표의 지표(indicator-of-indicator) 합성.

한 노드의 입력은 원시 가격 필드이거나 다른 노드의 출력 시리즈이며, 항상 명시적 인자로 전달된다.
공유 "현재 작업 시리즈" 필드를 덮어쓰고 복원하는 방식은 쓰지 않는다.

- build(): 이름/소스/파라미터 검증 + 순환 탐지 (계산 전에 실패)
- evaluate(): 위상 레벨 순서로 평가. 같은 레벨의 노드는 서로 독립이므로 병렬 평가 가능
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from joblib import delayed

from indicator_engine.contracts import (
    CompositionCycleError,
    CompositionError,
    IndicatorInputError,
    ValidationError,
)
from indicator_engine.shared.hashing import calculate_sha256
from indicator_engine.shared.logger import get_logger
from indicator_engine.shared.parallel import get_parallel_pool, should_parallelize
from .registry import IndicatorRegistry, get_registry
from .result import IndicatorResult
from .series import BarSeries, ComputedSeries, InputName, as_input

logger = get_logger("indicator.graph")

RAW_SOURCES = frozenset(name.value for name in InputName)


@dataclass(frozen=True, eq=False)
class GraphNode:
    name: str
    indicator: str
    params: Dict[str, Any] = field(default_factory=dict)
    # None: 지표 기본 입력 (bars 지표는 BarSeries 그대로, 시리즈 지표는 primary)
    source: Optional[str] = None
    output: Optional[str] = None
    benchmark: Optional[str] = None

    def describe(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "indicator": self.indicator.upper(),
            "params": dict(self.params),
            "source": self.source,
            "output": self.output,
            "benchmark": self.benchmark,
        }


class CompositionGraph:
    """
    Example:
        >>> graph = CompositionGraph()
        >>> graph.add_node("rsi", "RSI", {"period": 14})
        >>> graph.add_node("rsi_sma", "SMA", {"period": 5}, source="rsi")
        >>> results = graph.evaluate(bars)
        >>> results["rsi_sma"].primary
    """

    def __init__(self, registry: Optional[IndicatorRegistry] = None):
        self._registry = registry
        self._nodes: Dict[str, GraphNode] = {}
        self._levels: Optional[List[List[str]]] = None

    @property
    def registry(self) -> IndicatorRegistry:
        return self._registry if self._registry is not None else get_registry()

    @property
    def nodes(self) -> Mapping[str, GraphNode]:
        return dict(self._nodes)

    def __len__(self) -> int:
        return len(self._nodes)

    def add_node(self, name: str, indicator: str, params: Optional[Dict[str, Any]] = None,
                 source: Optional[str] = None, output: Optional[str] = None,
                 benchmark: Optional[str] = None) -> "CompositionGraph":
        if name in self._nodes:
            logger.warning(f"[CompositionGraph] Rejected duplicate node '{name}'")
            raise CompositionError(f"duplicate node '{name}'", reason="DUPLICATE_NODE", nodes=[name])
        if name in RAW_SOURCES:
            logger.warning(f"[CompositionGraph] Rejected node name '{name}' (input field)")
            raise CompositionError(f"node name '{name}' shadows an input field", reason="RESERVED_NAME", nodes=[name])
        self._nodes[name] = GraphNode(name, indicator, dict(params or {}), source, output, benchmark)
        self._levels = None
        return self

    def _dependencies(self, node: GraphNode) -> List[str]:
        return [ref for ref in (node.source, node.benchmark) if ref is not None and ref in self._nodes]

    # ------------------------------------------------------------------
    # Construction-time validation
    # ------------------------------------------------------------------
    def _validate_node(self, node: GraphNode) -> None:
        definition = self.registry.get(node.indicator)
        try:
            definition.make_config(node.params)
        except ValidationError as exc:
            raise CompositionError(f"node '{node.name}': {exc}", reason="INVALID_PARAMS", nodes=[node.name]) from exc

        if node.source is not None and node.source not in RAW_SOURCES and node.source not in self._nodes:
            raise CompositionError(
                f"node '{node.name}' reads unknown source '{node.source}'", reason="UNKNOWN_SOURCE", nodes=[node.name]
            )
        if node.output is not None:
            if node.source is None or node.source in RAW_SOURCES:
                raise CompositionError(
                    f"node '{node.name}' selects output '{node.output}' but reads no node (source={node.source})",
                    reason="UNKNOWN_OUTPUT", nodes=[node.name],
                )
            upstream = self.registry.get(self._nodes[node.source].indicator)
            if upstream.outputs and node.output not in upstream.outputs:
                raise CompositionError(
                    f"node '{node.name}': '{node.source}' has no output '{node.output}' (has {upstream.outputs})",
                    reason="UNKNOWN_OUTPUT", nodes=[node.name],
                )
        if definition.input_kind == "pair" and node.benchmark is None:
            raise CompositionError(f"node '{node.name}' needs a benchmark", reason="MISSING_BENCHMARK", nodes=[node.name])

    def build(self) -> List[List[str]]:
        """
        노드를 검증하고 위상 레벨(Kahn)을 돌려준다. 레벨 k의 노드는 레벨 < k의 노드에만 의존한다.
        순환이 있으면 CompositionCycleError.
        """
        if self._levels is not None:
            return self._levels

        for node in self._nodes.values():
            try:
                self._validate_node(node)
            except CompositionError as exc:
                logger.warning(f"[CompositionGraph] Invalid node '{node.name}' ({exc.reason}): {exc}")
                raise

        indegree = {name: len(self._dependencies(node)) for name, node in self._nodes.items()}
        dependents: Dict[str, List[str]] = {name: [] for name in self._nodes}
        for name, node in self._nodes.items():
            for dep in self._dependencies(node):
                dependents[dep].append(name)

        levels: List[List[str]] = []
        ready = [name for name, degree in indegree.items() if degree == 0]
        placed = 0
        while ready:
            levels.append(ready)
            placed += len(ready)
            next_ready: List[str] = []
            for name in ready:
                for child in dependents[name]:
                    indegree[child] -= 1
                    if indegree[child] == 0:
                        next_ready.append(child)
            ready = next_ready

        if placed != len(self._nodes):
            cycle = self._find_cycle({name for name, degree in indegree.items() if degree > 0})
            logger.error(f"[CompositionGraph] Cycle detected: {' -> '.join(cycle)}")
            raise CompositionCycleError(f"cyclic dependency: {' -> '.join(cycle)}", nodes=cycle)

        self._levels = levels
        logger.debug(f"[CompositionGraph] Built {len(self._nodes)} nodes in {len(levels)} levels")
        return levels

    def _find_cycle(self, remaining: set) -> List[str]:
        """남은(순환에 걸린) 노드 중 하나에서 의존성을 따라가 첫 반복 지점까지의 경로."""
        start = sorted(remaining)[0]
        path: List[str] = []
        seen: Dict[str, int] = {}
        current = start
        while current not in seen:
            seen[current] = len(path)
            path.append(current)
            current = next(dep for dep in self._dependencies(self._nodes[current]) if dep in remaining)
        return path[seen[current]:] + [current]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------
    def _resolve_source(self, node: GraphNode, bars: BarSeries, results: Mapping[str, IndicatorResult]) -> Any:
        definition = self.registry.get(node.indicator)
        if node.source is None:
            return bars if definition.input_kind == "bars" else bars.primary
        if node.source in RAW_SOURCES:
            return bars.with_input(node.source) if definition.input_kind == "bars" else bars.view(node.source)
        upstream = results[node.source]
        series = upstream[node.output] if node.output else upstream.primary
        return bars.with_primary(series) if definition.input_kind == "bars" else series

    def _resolve_benchmark(self, node: GraphNode, results: Mapping[str, IndicatorResult],
                           others: Mapping[str, Any]) -> Optional[ComputedSeries]:
        if node.benchmark is None:
            return None
        if node.benchmark in results:
            return results[node.benchmark].primary
        return as_input(others[node.benchmark], node.benchmark)

    def _evaluate_node(self, node: GraphNode, bars: BarSeries, results: Mapping[str, IndicatorResult],
                       others: Mapping[str, Any]) -> IndicatorResult:
        source = self._resolve_source(node, bars, results)
        benchmark = self._resolve_benchmark(node, results, others)
        return self.registry.invoke(node.indicator, source, node.params, benchmark=benchmark)

    def _check_boundary(self, bars: BarSeries, others: Mapping[str, Any]) -> None:
        for node in self._nodes.values():
            if node.benchmark is None or node.benchmark in self._nodes:
                continue
            if node.benchmark not in others:
                raise CompositionError(
                    f"node '{node.name}' references missing benchmark '{node.benchmark}'",
                    reason="UNKNOWN_SOURCE", nodes=[node.name],
                )
            length = len(as_input(others[node.benchmark]))
            if length != len(bars):
                logger.error(f"[CompositionGraph] Benchmark '{node.benchmark}' length {length} != {len(bars)}")
                raise IndicatorInputError(f"benchmark '{node.benchmark}' length {length} not {len(bars)}")

    def evaluate(self, bars: BarSeries, others: Optional[Mapping[str, Any]] = None) -> Dict[str, IndicatorResult]:
        """모든 노드를 평가해 {노드 이름: IndicatorResult}를 돌려준다. bars는 변경되지 않는다."""
        others = dict(others or {})
        levels = self.build()
        self._check_boundary(bars, others)

        results: Dict[str, IndicatorResult] = {}
        for depth, level in enumerate(levels):
            nodes = [self._nodes[name] for name in level]
            if should_parallelize(len(nodes)):
                logger.debug(f"[CompositionGraph] Level {depth}: {len(nodes)} nodes in parallel")
                outputs = get_parallel_pool()(
                    delayed(self._evaluate_node)(node, bars, results, others) for node in nodes
                )
            else:
                outputs = [self._evaluate_node(node, bars, results, others) for node in nodes]
            results.update(zip(level, outputs))
        return results

    def fingerprint(self) -> str:
        return calculate_sha256(sorted((n.describe() for n in self._nodes.values()), key=lambda d: d["name"]))


def compose(indicator: str, source: Any, params: Optional[Dict[str, Any]] = None, output: Optional[str] = None,
            bars: Optional[BarSeries] = None, benchmark: Any = None,
            registry: Optional[IndicatorRegistry] = None) -> IndicatorResult:
    """
    단발성 합성: source(IndicatorResult면 primary 또는 output)를 지표의 입력으로 넘긴다.
    BarSeries가 필요한 지표는 bars를 주면 primary만 교체해 사용한다.
    """
    registry = registry or get_registry()
    if isinstance(source, IndicatorResult):
        series = source[output] if output else source.primary
    else:
        series = as_input(source)
    if registry.get(indicator).input_kind == "bars":
        if bars is None:
            raise CompositionError(f"{indicator} needs bars to compose over", reason="MISSING_BARS")
        return registry.invoke(indicator, bars.with_primary(series), params)
    return registry.invoke(indicator, series, params, benchmark=benchmark)
