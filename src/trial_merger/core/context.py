from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class RunContext:
    """
    Shared pipeline context.
    This object is passed between orchestration layers.
    """

    config: Any
    logger: Any

    # (kind, path) pairs, read in order
    sources: List[Tuple[str, str]] = field(default_factory=list)
    output_path: Optional[str] = None

    stats: Dict[str, int] = field(default_factory=dict)
    errors: list = field(default_factory=list)

    debug: bool = False

    def bump(self, key: str, amount: int = 1) -> None:
        self.stats[key] = self.stats.get(key, 0) + amount
