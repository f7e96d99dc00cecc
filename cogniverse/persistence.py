"""
StrategyStore interface for pluggable storage of learned strategies.

Agents that learn record experiences and strategies as MemoryEntry records.
Persistence is OPTIONAL - the default store lives entirely in memory.

Two included implementations:
1. InMemoryStrategyStore - Dict-based storage, data lost on exit (testing, prototyping)
2. JsonStrategyStore - One JSONL file per agent, human-readable (small deployments)

Key responsibilities:
- Store, retrieve, update and delete memory entries
- Filter and sort entries (agent, type, importance, substring search)
- Consolidate: drop unimportant entries nobody has looked at for a week
- Summarise contents (counts by type and agent, mean importance)

Usage pattern:
    store = InMemoryStrategyStore()  # or JsonStrategyStore("strategies")
    await store.initialize()
    entry_id = await store.store(MemoryEntry(agent_id="a1", type="skill", content={...}))
    skills = await store.query(MemoryQuery(agent_id="a1", type="skill"))
    await store.close()
"""

import asyncio
import json
from abc import ABC, abstractmethod
from collections import Counter
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from cogniverse.logging_utils import log_deterministic
from cogniverse.schemas import MemoryEntry, MemoryQuery, StoreStatistics, utc_now

# Entries below this importance are candidates for consolidation
CONSOLIDATION_IMPORTANCE = 0.3
CONSOLIDATION_AGE = timedelta(days=7)


class StrategyStore(ABC):
    """Abstract base class for memory entry persistence.

    All methods are async so that file or database backends never block the
    event loop the orchestrator runs on.

    Method categories:
    1. Lifecycle: initialize(), close()
    2. CRUD: store(), retrieve(), update(), delete()
    3. Search: query()
    4. Maintenance: consolidate(), get_statistics(), clear()
    """

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the backend (create directories, load files)."""
        pass

    @abstractmethod
    async def close(self) -> None:
        pass

    @abstractmethod
    async def store(self, entry: MemoryEntry) -> str:
        """Save ``entry`` and return its id."""
        pass

    @abstractmethod
    async def retrieve(self, entry_id: str) -> Optional[MemoryEntry]:
        """Return an entry by id, recording the access (count and timestamp)."""
        pass

    @abstractmethod
    async def query(self, query: MemoryQuery) -> List[MemoryEntry]:
        pass

    @abstractmethod
    async def update(self, entry_id: str, **changes: Any) -> bool:
        """Apply field changes to an entry. Returns False if the id is unknown."""
        pass

    @abstractmethod
    async def delete(self, entry_id: str) -> bool:
        pass

    @abstractmethod
    async def consolidate(self) -> int:
        """Remove stale, unimportant entries and return how many were removed."""
        pass

    @abstractmethod
    async def get_statistics(self) -> StoreStatistics:
        pass

    @abstractmethod
    async def clear(self) -> None:
        pass


def apply_query(entries: Iterable[MemoryEntry], query: MemoryQuery) -> List[MemoryEntry]:
    """Filter, sort (descending) and limit ``entries`` according to ``query``."""
    results = list(entries)

    if query.agent_id is not None:
        results = [e for e in results if e.agent_id == query.agent_id]
    if query.type is not None:
        results = [e for e in results if e.type == query.type]
    if query.min_importance is not None:
        results = [e for e in results if e.importance >= query.min_importance]
    if query.search_term:
        term = query.search_term.lower()
        results = [e for e in results if term in json.dumps(e.content, default=str).lower()]

    results.sort(key=lambda e: getattr(e, query.sort_by), reverse=True)

    if query.limit is not None:
        results = results[: query.limit]
    return results


def is_stale(entry: MemoryEntry, now=None) -> bool:
    now = now or utc_now()
    return (
        entry.importance < CONSOLIDATION_IMPORTANCE
        and now - entry.timestamp > CONSOLIDATION_AGE
        and now - entry.last_accessed > CONSOLIDATION_AGE
    )


class InMemoryStrategyStore(StrategyStore):
    """In-memory store using a dict keyed by entry id.

    Data is lost when the process exits. close() does NOT clear data so
    callers can inspect entries after a run; use clear() for explicit cleanup.
    """

    def __init__(self):
        self.entries: Dict[str, MemoryEntry] = {}

    async def initialize(self) -> None:
        pass

    async def close(self) -> None:
        pass

    async def store(self, entry: MemoryEntry) -> str:
        self.entries[entry.id] = entry
        await self._persist(entry.agent_id)
        return entry.id

    async def retrieve(self, entry_id: str) -> Optional[MemoryEntry]:
        entry = self.entries.get(entry_id)
        if entry is None:
            return None

        entry.access_count += 1
        entry.last_accessed = utc_now()
        await self._persist(entry.agent_id)
        return entry

    async def query(self, query: MemoryQuery) -> List[MemoryEntry]:
        return apply_query(self.entries.values(), query)

    async def update(self, entry_id: str, **changes: Any) -> bool:
        entry = self.entries.get(entry_id)
        if entry is None:
            return False

        # Validate the merged record so bad field values are rejected
        updated = MemoryEntry.model_validate({**entry.model_dump(), **changes, "id": entry_id})
        self.entries[entry_id] = updated
        await self._persist(updated.agent_id)
        if updated.agent_id != entry.agent_id:
            await self._persist(entry.agent_id)
        return True

    async def delete(self, entry_id: str) -> bool:
        entry = self.entries.pop(entry_id, None)
        if entry is None:
            return False
        await self._persist(entry.agent_id)
        return True

    async def consolidate(self) -> int:
        now = utc_now()
        stale = [e for e in self.entries.values() if is_stale(e, now)]
        for entry in stale:
            del self.entries[entry.id]
        for agent_id in {e.agent_id for e in stale}:
            await self._persist(agent_id)

        if stale:
            log_deterministic(f"[Store] Consolidated {len(stale)} stale entries")
        return len(stale)

    async def get_statistics(self) -> StoreStatistics:
        entries = list(self.entries.values())
        return StoreStatistics(
            total_memories=len(entries),
            by_type=dict(Counter(e.type for e in entries)),
            by_agent=dict(Counter(e.agent_id for e in entries)),
            average_importance=(
                sum(e.importance for e in entries) / len(entries) if entries else 0.0
            ),
        )

    async def clear(self) -> None:
        agent_ids = {e.agent_id for e in self.entries.values()}
        self.entries.clear()
        for agent_id in agent_ids:
            await self._persist(agent_id)

    async def _persist(self, agent_id: str) -> None:
        """Hook for durable subclasses; the in-memory store keeps nothing on disk."""
        return None


class JsonStrategyStore(InMemoryStrategyStore):
    """File-backed store: one JSONL stream per agent.

    Directory structure:
    ```
    {base_path}/
      {agent_id}.jsonl    # one MemoryEntry per line
    ```

    All entries are loaded in initialize(); every mutation rewrites the
    affected agent's file. File I/O runs in the thread pool
    (asyncio.to_thread). No locking: one store instance per directory.
    """

    def __init__(self, base_path: Path | str = "strategies"):
        super().__init__()
        self.base_path = Path(base_path)

    async def initialize(self) -> None:
        await asyncio.to_thread(self.base_path.mkdir, parents=True, exist_ok=True)

        def _read_all() -> List[str]:
            lines: List[str] = []
            for path in sorted(self.base_path.glob("*.jsonl")):
                lines.extend(path.read_text("utf-8").splitlines())
            return lines

        lines = await asyncio.to_thread(_read_all)
        for line in lines:
            if line:
                entry = MemoryEntry.model_validate_json(line)
                self.entries[entry.id] = entry

        log_deterministic(f"[Store] Loaded {len(self.entries)} entries from {self.base_path}")

    async def _persist(self, agent_id: str) -> None:
        path = self._agent_path(agent_id)
        payload = [
            entry.model_dump_json()
            for entry in self.entries.values()
            if entry.agent_id == agent_id
        ]

        def _write() -> None:
            if not payload:
                if path.exists():
                    path.unlink()
                return
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("\n".join(payload) + "\n", "utf-8")

        await asyncio.to_thread(_write)

    def _agent_path(self, agent_id: str) -> Path:
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in agent_id)
        return self.base_path / f"{safe}.jsonl"
