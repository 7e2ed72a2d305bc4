"""
Configuration Module - 계층형 Config 구조

지표 엔진의 모든 설정값을 중앙에서 관리합니다.
환경(ENV)에 따라 다른 설정을 적용할 수 있습니다.

- 기본 입력 필드 / 윈도우 워밍업 정책
- 수치 폴백 정책 (0 대체)
- 병렬 평가 (CompositionGraph 독립 브랜치)
"""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

load_dotenv()


def _optional_int(name: str) -> Optional[int]:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else None


@dataclass
class BaseConfig:
    """기본 설정 클래스"""

    # ----------------------------------------
    # Paths
    # ----------------------------------------
    BASE_DIR: Path = field(default_factory=lambda: Path(__file__).resolve().parent.parent)

    @property
    def LOG_DIR(self) -> Path:
        return Path(os.getenv("LOG_DIR", str(self.BASE_DIR / "logs")))

    LOG_LEVEL: str = field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))

    # ----------------------------------------
    # Input / Warm-up Settings
    # ----------------------------------------
    DEFAULT_INPUT: str = field(default_factory=lambda: os.getenv("DEFAULT_INPUT", "close"))
    # "partial" | "zero_fill"
    DEFAULT_WINDOW_POLICY: str = field(default_factory=lambda: os.getenv("DEFAULT_WINDOW_POLICY", "partial"))

    # ----------------------------------------
    # Numeric Policy
    # ----------------------------------------
    EMA_ALPHA_MIN: float = 0.01
    EMA_ALPHA_MAX: float = 0.99
    LENGTH_MIN: int = 2
    LENGTH_MAX: int = 530
    EXP_CAP: float = 100.0
    NUMERIC_FALLBACK: float = 0.0
    # None = 반올림 안 함 (원 구현은 소수 4자리)
    OUTPUT_ROUND_DIGITS: Optional[int] = field(default_factory=lambda: _optional_int("OUTPUT_ROUND_DIGITS"))

    # ----------------------------------------
    # Execution Settings
    # ----------------------------------------
    STRICT_MODE: bool = False

    PARALLEL_ENABLED: bool = field(
        default_factory=lambda: os.getenv("PARALLEL_ENABLED", "True").lower() == "true"
    )
    PARALLEL_MAX_WORKERS: int = field(
        default_factory=lambda: int(os.getenv("PARALLEL_MAX_WORKERS", str(os.cpu_count() or 1)))
    )
    # 브랜치 평가는 numpy 위주라 GIL 영향이 작음 -> threading
    PARALLEL_BACKEND: str = field(default_factory=lambda: os.getenv("PARALLEL_BACKEND", "threading"))
    PARALLEL_MIN_BRANCHES: int = 2
    PARALLEL_TIMEOUT: int = 600


@dataclass
class DevelopmentConfig(BaseConfig):
    """개발 환경 설정"""
    LOG_LEVEL: str = "DEBUG"


@dataclass
class ProductionConfig(BaseConfig):
    """프로덕션 환경 설정"""
    STRICT_MODE: bool = True


@dataclass
class TestConfig(BaseConfig):
    """테스트 환경 설정 - 결정론적 실행"""
    PARALLEL_ENABLED: bool = False
    PARALLEL_MAX_WORKERS: int = 1
    OUTPUT_ROUND_DIGITS: Optional[int] = None


_config_map = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "test": TestConfig,
    "default": BaseConfig,
}


def get_config(env: Optional[str] = None) -> BaseConfig:
    """환경에 맞는 Config 인스턴스를 반환합니다."""
    if env is None:
        env = os.getenv("ENV", "default")

    config_class = _config_map.get(env.lower(), BaseConfig)
    return config_class()


# Default Singleton Instance
config = get_config()
