"""
Translation memory

A durable, fuzzy-matched cache of previous translations keyed by language
pair and source text. Entries live in memory for lookups and are persisted as
a JSON list in `translation_memory.json`. New translations are held in memory
until `flush`; the orchestrator flushes once per batch. Every write puts a
complete snapshot in a temporary file and atomically swaps it in, under a
single writer lock, so readers never observe a partially written store.

Storage failures never stop a translation run: they are logged, and lookups
behave as cache misses.
"""
import asyncio
import json
import os
from datetime import timedelta
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import aiofiles

from ...config import (
    TRANSLATION_MEMORY_DIR,
    TRANSLATION_MEMORY_FILENAME,
    TRANSLATION_MEMORY_MAX_RESULTS,
    TRANSLATION_MEMORY_MIN_SIMILARITY,
    TRANSLATION_MEMORY_RETENTION_DAYS,
)
from ...utils.unified_logger import LogType, UnifiedLogger, get_logger
from ..cancellation import CancellationToken, raise_if_cancelled
from ..exceptions import TranslationMemoryError
from .models import TranslationMemoryEntry, memory_key, utc_now
from .similarity import similarity, similarity_upper_bound

# Fuzzy matches below this similarity are never returned
SIMILARITY_FLOOR = 0.8


class TranslationMemory:
    """Fuzzy-matching translation cache with JSON persistence."""

    def __init__(self,
                 storage_directory: str = TRANSLATION_MEMORY_DIR,
                 min_similarity: float = TRANSLATION_MEMORY_MIN_SIMILARITY,
                 max_results: int = TRANSLATION_MEMORY_MAX_RESULTS,
                 retention_days: int = TRANSLATION_MEMORY_RETENTION_DAYS,
                 logger: Optional[UnifiedLogger] = None):
        self.storage_directory = Path(storage_directory)
        self.storage_file = self.storage_directory / TRANSLATION_MEMORY_FILENAME
        self.min_similarity = min_similarity
        self.max_results = max_results
        self.retention_days = retention_days
        self.logger = logger or get_logger()

        self._entries: Dict[str, TranslationMemoryEntry] = {}
        self._write_lock = asyncio.Lock()
        self._dirty = False

    @classmethod
    async def open(cls, storage_directory: str = TRANSLATION_MEMORY_DIR,
                   cancel_token: Optional[CancellationToken] = None, **kwargs) -> 'TranslationMemory':
        """Create a memory and load its persisted entries."""
        memory = cls(storage_directory, **kwargs)
        await memory.load(cancel_token)
        return memory

    def __len__(self) -> int:
        return len(self._entries)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def load(self, cancel_token: Optional[CancellationToken] = None) -> int:
        """
        Load persisted entries. A missing file means an empty memory; an
        unreadable or corrupt file is logged and also leaves it empty.

        Returns:
            Number of entries loaded
        """
        raise_if_cancelled(cancel_token)
        if not self.storage_file.exists():
            return 0

        try:
            async with aiofiles.open(self.storage_file, 'r', encoding='utf-8') as f:
                raw = await f.read()
            entries = [TranslationMemoryEntry.from_dict(item) for item in json.loads(raw)]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            self.logger.error(f"Failed to load translation memory from {self.storage_file}: {e}",
                              LogType.MEMORY)
            return 0

        self._entries = {entry.key: entry for entry in entries}
        self.logger.debug(f"Loaded {len(self._entries)} translation memory entries", LogType.MEMORY)
        return len(self._entries)

    async def _write_snapshot(self, snapshot: List[Dict]) -> None:
        """Serialize off the event loop, then swap the file in atomically."""
        payload = await asyncio.to_thread(json.dumps, snapshot, ensure_ascii=False, indent=2)
        temp_file = self.storage_file.with_name(self.storage_file.name + '.tmp')
        self.storage_directory.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(temp_file, 'w', encoding='utf-8') as f:
            await f.write(payload)
        os.replace(temp_file, self.storage_file)

    async def _persist(self, cancel_token: Optional[CancellationToken] = None) -> bool:
        """Write a full snapshot of the store. Failures are logged, not raised."""
        raise_if_cancelled(cancel_token)
        async with self._write_lock:
            snapshot = [entry.to_dict() for entry in self._entries.values()]
            self._dirty = False
            try:
                await self._write_snapshot(snapshot)
            except (OSError, TypeError, ValueError) as e:
                self._dirty = True
                self.logger.error(f"Failed to save translation memory to {self.storage_file}: {e}",
                                  LogType.MEMORY)
                return False
        return True

    async def flush(self, cancel_token: Optional[CancellationToken] = None) -> bool:
        """Persist pending stores and usage-counter updates, if any."""
        if not self._dirty:
            return True
        return await self._persist(cancel_token)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def calculate_similarity(self, text1: str, text2: str) -> float:
        return similarity(text1, text2)

    def _rank(self, source_text: str, source_language: str, target_language: str,
              threshold: float) -> List[Tuple[float, TranslationMemoryEntry]]:
        """Same-pair entries at or above threshold, best first, most recently used first on ties."""
        scored = []
        for entry in list(self._entries.values()):
            if entry.source_language != source_language or entry.target_language != target_language:
                continue
            if similarity_upper_bound(source_text, entry.source_text) < threshold:
                continue
            score = similarity(source_text, entry.source_text, score_cutoff=threshold)
            if score >= threshold:
                scored.append((score, entry))
        scored.sort(key=lambda item: (item[0], item[1].last_used), reverse=True)
        return scored

    def _touch(self, entry: TranslationMemoryEntry) -> None:
        entry.touch()
        self._dirty = True

    async def find_match(self, source_text: str, source_language: str, target_language: str,
                         min_similarity: Optional[float] = None) -> Optional[TranslationMemoryEntry]:
        """
        Exact-key hit if present, otherwise the most similar same-pair entry
        scoring at least max(SIMILARITY_FLOOR, min_similarity).
        """
        exact = self._entries.get(memory_key(source_text, source_language, target_language))
        if exact is not None and exact.source_text == source_text:
            self._touch(exact)
            return exact

        threshold = max(SIMILARITY_FLOOR, self.min_similarity if min_similarity is None else min_similarity)
        ranked = self._rank(source_text, source_language, target_language, threshold)
        if not ranked:
            return None

        score, best = ranked[0]
        self._touch(best)
        self.logger.debug(f"Fuzzy translation memory match (similarity {score:.2f})", LogType.MEMORY)
        return best

    async def find_similar_entries(self, source_text: str, source_language: str, target_language: str,
                                   max_results: Optional[int] = None) -> List[TranslationMemoryEntry]:
        """Up to max_results entries with similarity >= SIMILARITY_FLOOR, most similar first."""
        limit = self.max_results if max_results is None else max_results
        ranked = self._rank(source_text, source_language, target_language, SIMILARITY_FLOOR)[:limit]
        for _, entry in ranked:
            self._touch(entry)
        return [entry for _, entry in ranked]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def store(self, entry: TranslationMemoryEntry,
                    cancel_token: Optional[CancellationToken] = None) -> bool:
        """Insert or replace an entry. It reaches disk on the next `flush`."""
        raise_if_cancelled(cancel_token)
        self._entries[entry.key] = entry
        self._dirty = True
        return True

    async def update_entry(self, entry: TranslationMemoryEntry) -> bool:
        """Replace an existing entry. Returns False if no entry has that key."""
        if entry.key not in self._entries:
            return False
        self._entries[entry.key] = entry
        await self._persist()
        return True

    async def delete_entry(self, source_text: str, source_language: str, target_language: str) -> bool:
        removed = self._entries.pop(memory_key(source_text, source_language, target_language), None)
        if removed is None:
            return False
        await self._persist()
        return True

    async def clear_memory(self, source_language: Optional[str] = None,
                           target_language: Optional[str] = None) -> int:
        """Remove all entries, or only those matching the given languages. Returns the count removed."""
        if source_language is None and target_language is None:
            removed = len(self._entries)
            self._entries.clear()
        else:
            keys = [
                key for key, entry in self._entries.items()
                if (source_language is None or entry.source_language == source_language)
                and (target_language is None or entry.target_language == target_language)
            ]
            for key in keys:
                del self._entries[key]
            removed = len(keys)
        await self._persist()
        return removed

    async def optimize_storage(self) -> int:
        """Purge entries not used within the retention window. Returns the count removed."""
        cutoff = utc_now() - timedelta(days=self.retention_days)
        stale = [key for key, entry in self._entries.items() if entry.last_used < cutoff]
        for key in stale:
            del self._entries[key]
        await self._persist()
        if stale:
            self.logger.info(f"Translation memory: purged {len(stale)} entries unused for "
                             f"{self.retention_days} days", LogType.MEMORY)
        return len(stale)

    # ------------------------------------------------------------------
    # Import / export / statistics
    # ------------------------------------------------------------------

    async def export_memory(self, file_path: str) -> int:
        """Write all entries as a JSON list. Returns the count written."""
        entries = [entry.to_dict() for entry in self._entries.values()]
        try:
            async with aiofiles.open(file_path, 'w', encoding='utf-8') as f:
                await f.write(json.dumps(entries, ensure_ascii=False, indent=2))
        except OSError as e:
            raise TranslationMemoryError(f"Could not export translation memory: {e}",
                                         {'file_path': file_path}) from e
        return len(entries)

    async def import_memory(self, file_path: str) -> int:
        """Merge entries from a JSON list (imported entries win). Returns the count imported."""
        try:
            async with aiofiles.open(file_path, 'r', encoding='utf-8') as f:
                raw = await f.read()
            entries = [TranslationMemoryEntry.from_dict(item) for item in json.loads(raw)]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise TranslationMemoryError(f"Could not import translation memory: {e}",
                                         {'file_path': file_path}) from e

        for entry in entries:
            self._entries[entry.key] = entry
        await self._persist()
        return len(entries)

    def entries(self) -> List[TranslationMemoryEntry]:
        return list(self._entries.values())

    def _language_pairs(self) -> List[Tuple[str, str]]:
        return sorted({(e.source_language, e.target_language) for e in self._entries.values()})

    def get_statistics(self) -> Dict[str, int]:
        return {
            'total_entries': len(self._entries),
            'language_pairs': len(self._language_pairs()),
        }

    def get_supported_languages(self) -> List[str]:
        return sorted({lang for pair in self._language_pairs() for lang in pair})
