import json
import hashlib
from enum import Enum
from typing import Any

import numpy as np
import pandas as pd


def get_canonical_json(data: Any) -> str:
    """Returns a canonical JSON string (keys sorted, floats rounded)."""
    def _sanitize(obj):
        if isinstance(obj, dict):
            return {str(k): _sanitize(v) for k, v in sorted(obj.items(), key=lambda kv: str(kv[0]))}
        elif isinstance(obj, (list, tuple)):
            return [_sanitize(x) for x in obj]
        elif isinstance(obj, Enum):
            return obj.value
        elif isinstance(obj, (np.floating, float)):
            return round(float(obj), 8)
        elif isinstance(obj, np.integer):
            return int(obj)
        return obj

    return json.dumps(_sanitize(data), separators=(",", ":"))


def calculate_sha256(data: Any) -> str:
    """Calculates SHA256 hash of canonical JSON representation."""
    canonical = get_canonical_json(data)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def hash_values(values: np.ndarray) -> str:
    """
    Bit-exact hash of a float64 array.
    Used by determinism checks: equal hashes <=> identical bytes.
    """
    arr = np.ascontiguousarray(values, dtype=np.float64)
    return hashlib.sha256(arr.tobytes()).hexdigest()


def hash_dataframe(df: pd.DataFrame) -> str:
    """
    Stable hash for DataFrame contents + index/columns.
    """
    content_hash = int(pd.util.hash_pandas_object(df, index=True).sum())
    payload = {
        "content": content_hash,
        "columns": [str(c) for c in df.columns],
        "shape": list(df.shape),
    }
    return calculate_sha256(payload)
