"""Runtime settings for the question/answer pipelines and the offline cache.

Relevant environment variables:
    - `WHY_MAX_ATTEMPTS`: generation attempts per question (default 3).
    - `WHY_DUPLICATE_THRESHOLD`: word-overlap ratio a candidate must exceed to count as duplicate (0.80).
    - `WHY_HALLUCINATION_CUTOFF`: confidence below which an invalid verdict
      rejects a candidate (70).
    - `WHY_HISTORY_LIMIT`: questions kept per user (50).
    - `WHY_CACHE_SIZE_LIMIT`: capacity of each offline collection (100).
    - `WHY_CACHE_EXPIRY_DAYS`: offline entry lifetime (7).
    - `WHY_CACHE_SNAPSHOT_PATH`: optional JSON snapshot file for the cache.
    - `WHY_OFFLINE_MODE`: force the offline branch when "true".

Values are resolved at import time, as in `whyforge.llm.provider_config`.
"""

import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class PipelineSettings:
    max_attempts: int = int(os.getenv("WHY_MAX_ATTEMPTS", "3"))
    duplicate_threshold: float = float(os.getenv("WHY_DUPLICATE_THRESHOLD", "0.8"))
    hallucination_cutoff: int = int(os.getenv("WHY_HALLUCINATION_CUTOFF", "70"))
    history_limit: int = int(os.getenv("WHY_HISTORY_LIMIT", "50"))


@dataclass(frozen=True)
class OfflineSettings:
    size_limit: int = int(os.getenv("WHY_CACHE_SIZE_LIMIT", "100"))
    expiry_days: int = int(os.getenv("WHY_CACHE_EXPIRY_DAYS", "7"))
    snapshot_path: str | None = os.getenv("WHY_CACHE_SNAPSHOT_PATH") or None
    force_offline: bool = _env_flag("WHY_OFFLINE_MODE")
