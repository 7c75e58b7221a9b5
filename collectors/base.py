"""
Base collector interface: every platform probe implements this.
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from utils import get_logger

logger = get_logger(__name__)


@dataclass
class CollectorResult:
    """Result from a single collector: success flag, optional error, and data dict."""
    success: bool = True
    error: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def get(self, key: str, default: Any = None) -> Any:
        """Value for key, or default when the collection failed or omitted it."""
        if not self.success:
            return default
        value = self.data.get(key)
        return default if value is None else value


class BaseCollector(ABC):
    """Abstract base for all metric collectors."""

    name: str = "base"

    @abstractmethod
    def collect(self) -> CollectorResult:
        """Run collection and return result. Should not raise; return CollectorResult(success=False, error="...") on failure."""
        ...

    def collect_safe(self) -> CollectorResult:
        """Wrapper that catches exceptions and returns failed result."""
        try:
            return self.collect()
        except Exception as e:
            logger.debug("collector %s failed: %s", self.name, e)
            return CollectorResult(success=False, error=str(e), data={})
