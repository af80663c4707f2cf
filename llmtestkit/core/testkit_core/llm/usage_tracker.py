"""Append-only LLM cost ledger with persistent JSONL storage."""

import json
import logging
import threading
from dataclasses import dataclass, asdict, field
from datetime import datetime, date, UTC
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class CostEntry:
    """Usage and cost of a single completion request."""
    provider: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0
    estimated: bool = False
    timestamp: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CostEntry":
        """Create from dictionary."""
        return cls(**{k: v for k, v in data.items() if k in cls.__dataclass_fields__})


@dataclass
class LLMUsageStats:
    """Aggregated usage statistics for a single day."""
    date: str
    request_count: int = 0
    total_cost: float = 0.0
    input_tokens: int = 0
    output_tokens: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class CostLedger:
    """Append-only cost ledger.

    Appends are serialized with a lock and each entry is written as one JSON
    line, so concurrent sessions never interleave partial records.
    ``record`` blocks on the file write; async callers run it in an executor.
    Pass ``data_dir=None`` for an in-memory ledger.
    """

    FILE_NAME = "llm_costs.jsonl"

    def __init__(self, data_dir: Optional[Path] = None):
        """Initialize cost ledger.

        Args:
            data_dir: Directory to store the ledger file (in-memory if None)
        """
        self._lock = threading.Lock()
        self._entries: List[CostEntry] = []
        self.ledger_file: Optional[Path] = None

        if data_dir is not None:
            data_dir = Path(data_dir)
            data_dir.mkdir(parents=True, exist_ok=True)
            self.ledger_file = data_dir / self.FILE_NAME
            self._entries = self._load_entries()

    def _load_entries(self) -> List[CostEntry]:
        """Load existing entries, skipping lines that fail to decode."""
        if not self.ledger_file.exists():
            return []

        entries = []
        with open(self.ledger_file, "r") as f:
            for line_number, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    entries.append(CostEntry.from_dict(json.loads(line)))
                except (json.JSONDecodeError, TypeError) as e:
                    logger.warning(f"Skipping corrupt cost ledger line {line_number}: {e}")

        logger.debug(f"Loaded {len(entries)} cost entries from {self.ledger_file}")
        return entries

    def record(
        self,
        provider: str,
        model: str,
        input_tokens: int = 0,
        output_tokens: int = 0,
        cost: float = 0.0,
        estimated: bool = False,
    ) -> CostEntry:
        """Append a single request's usage.

        Args:
            provider: Provider name
            model: Model identifier
            input_tokens: Number of input tokens
            output_tokens: Number of output tokens
            cost: Cost of the request in USD
            estimated: Whether token counts are character-based estimates

        Returns:
            The appended entry
        """
        entry = CostEntry(
            provider=provider,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=input_tokens + output_tokens,
            cost=cost,
            estimated=estimated,
        )

        with self._lock:
            if self.ledger_file is not None:
                with open(self.ledger_file, "a") as f:
                    f.write(json.dumps(entry.to_dict()) + "\n")
            self._entries.append(entry)
            total = sum(e.cost for e in self._entries)

        logger.info(f"Cost added: ${cost:.6f} | Total: ${total:.6f}")
        return entry

    def entries(self) -> List[CostEntry]:
        with self._lock:
            return list(self._entries)

    def total_cost(self) -> float:
        return sum(e.cost for e in self.entries())

    def total_tokens(self) -> int:
        return sum(e.total_tokens for e in self.entries())

    def get_stats(self) -> Dict[str, Any]:
        """Overall statistics across every recorded request."""
        entries = self.entries()
        total = sum(e.cost for e in entries)
        count = len(entries)

        by_provider: Dict[str, float] = {}
        for e in entries:
            by_provider[e.provider] = by_provider.get(e.provider, 0.0) + e.cost

        return {
            "total_cost": total,
            "total_tokens": sum(e.total_tokens for e in entries),
            "request_count": count,
            "avg_cost_per_request": total / count if count else 0.0,
            "estimated_requests": sum(1 for e in entries if e.estimated),
            "cost_by_provider": by_provider,
        }

    def get_day_stats(self, day: Optional[date] = None) -> LLMUsageStats:
        """Aggregate statistics for one day (default: today, UTC)."""
        day_str = (day or datetime.now(UTC).date()).isoformat()
        stats = LLMUsageStats(date=day_str)

        for e in self.entries():
            if e.timestamp[:10] != day_str:
                continue
            stats.request_count += 1
            stats.total_cost += e.cost
            stats.input_tokens += e.input_tokens
            stats.output_tokens += e.output_tokens

        return stats

    def reset(self) -> None:
        """Drop every entry and truncate the ledger file."""
        with self._lock:
            self._entries = []
            if self.ledger_file is not None:
                self.ledger_file.write_text("")
        logger.info("Cost ledger reset")
