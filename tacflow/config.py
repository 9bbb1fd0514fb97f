"""
tacflow.config
==============

Per-analysis configuration.

Every analysis is constructed with an :class:`AnalysisConfig`.  The ``id``
names the analysis (``"constprop"``, ``"livevar"``, ``"deadcode"``, ``"cha"``)
and ``options`` carries free-form settings.  The solver understands:

``strategy``
    Worklist order, one of ``"fifo"``, ``"lifo"``, ``"rpo"`` (default).
``max_iterations``
    Safety bound on node visits (default 100000).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


DEFAULT_MAX_ITERATIONS = 100_000


@dataclass
class AnalysisConfig:
    """Configuration of one analysis run."""
    id: str
    options: Dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.options.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)

    def get_int(self, key: str, default: int) -> int:
        return int(self.options.get(key, default))

    @property
    def max_iterations(self) -> int:
        return self.get_int("max_iterations", DEFAULT_MAX_ITERATIONS)

    @classmethod
    def of(cls, analysis_id: str, config: Optional["AnalysisConfig"] = None,
           **options: Any) -> "AnalysisConfig":
        """Return *config* if given, else a fresh config for *analysis_id*."""
        if config is not None:
            return config
        return cls(id=analysis_id, options=dict(options))

    def __str__(self) -> str:
        if not self.options:
            return self.id
        opts = ", ".join(f"{k}={v}" for k, v in sorted(self.options.items()))
        return f"{self.id}[{opts}]"
