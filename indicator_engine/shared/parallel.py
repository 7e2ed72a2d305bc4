from joblib import Parallel
from indicator_engine.config import config


class ParallelManager:
    """
    Parallel Pool Manager
    CompositionGraph의 독립 브랜치(같은 레벨의 노드)를 동시에 평가할 때 쓰는 joblib.Parallel을 만든다.
    joblib.Parallel 인스턴스는 한 번에 하나의 호출만 실행할 수 있으므로 호출마다 새로 만든다.
    (여러 스레드가 동시에 evaluate해도 "already running" 충돌이 없다)
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ParallelManager, cls).__new__(cls)
        return cls._instance

    def get_pool(self) -> Parallel:
        """Returns a fresh Parallel context for a single level of branch tasks."""
        return Parallel(
            n_jobs=config.PARALLEL_MAX_WORKERS,
            backend=config.PARALLEL_BACKEND,
            timeout=config.PARALLEL_TIMEOUT,
            verbose=0
        )


def get_parallel_pool() -> Parallel:
    return ParallelManager().get_pool()


def should_parallelize(branch_count: int) -> bool:
    return (
        config.PARALLEL_ENABLED
        and config.PARALLEL_MAX_WORKERS > 1
        and branch_count >= config.PARALLEL_MIN_BRANCHES
    )
