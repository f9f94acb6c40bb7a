"""Translation run statistics.

Counts how every paragraph of a run ended up (memory hit, translated on the
first pass, translated during the retry pass, or left in the source language)
along with the retry distribution and per-tier batch counts.
"""

import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional


@dataclass
class TranslationStatistics:
    """Paragraph outcome counters for one orchestrator run."""

    total_paragraphs: int = 0
    memory_hits: int = 0
    successful_first_try: int = 0
    successful_after_retry: int = 0
    fallback_used: int = 0
    first_pass_failures: int = 0
    retry_attempts: int = 0

    retry_distribution: Dict[int, int] = field(default_factory=dict)
    """Map of retry attempts -> number of paragraphs. Example: {0: 85, 1: 10, 3: 2}"""

    tier_batches: Dict[str, int] = field(default_factory=dict)

    start_time: float = field(default_factory=time.time)
    end_time: float = 0.0
    total_time_seconds: float = 0.0

    def record_memory_hit(self) -> None:
        self.memory_hits += 1
        self.retry_distribution[0] = self.retry_distribution.get(0, 0) + 1

    def record_success(self, retries: int) -> None:
        """Record a paragraph translated by the provider.

        Args:
            retries: Retry attempts it took (0 = first pass)
        """
        if retries == 0:
            self.successful_first_try += 1
        else:
            self.successful_after_retry += 1
        self.retry_distribution[retries] = self.retry_distribution.get(retries, 0) + 1

    def record_fallback(self, retries: int) -> None:
        """Record a paragraph left in the source language after exhausting retries."""
        self.fallback_used += 1
        self.retry_distribution[retries] = self.retry_distribution.get(retries, 0) + 1

    def record_batch(self, tier_name: str) -> None:
        self.tier_batches[tier_name] = self.tier_batches.get(tier_name, 0) + 1

    def finalize(self) -> None:
        """Finalize timing (call when the run completes)."""
        self.end_time = time.time()
        self.total_time_seconds = self.end_time - self.start_time

    @property
    def translated(self) -> int:
        return self.memory_hits + self.successful_first_try + self.successful_after_retry

    @property
    def success_rate(self) -> float:
        """Share of paragraphs that ended up translated (excludes fallbacks)."""
        if self.total_paragraphs == 0:
            return 0.0
        return self.translated / self.total_paragraphs

    def to_dict(self) -> Dict:
        return {
            "total_paragraphs": self.total_paragraphs,
            "memory_hits": self.memory_hits,
            "successful_first_try": self.successful_first_try,
            "successful_after_retry": self.successful_after_retry,
            "fallback_used": self.fallback_used,
            "first_pass_failures": self.first_pass_failures,
            "retry_attempts": self.retry_attempts,
            "success_rate": self.success_rate,
            "retry_distribution": dict(self.retry_distribution),
            "tier_batches": dict(self.tier_batches),
            "total_time_seconds": self.total_time_seconds,
        }

    def log_summary(self, log_callback: Optional[Callable[[str], None]] = None) -> str:
        """Build (and optionally log) a human-readable summary."""
        lines = [
            "=== Translation Summary ===",
            f"Total paragraphs: {self.total_paragraphs}",
            f"Translation memory hits: {self.memory_hits}",
            f"Success 1st try: {self.successful_first_try}",
            f"Success after retry: {self.successful_after_retry}",
            f"Total retry attempts: {self.retry_attempts}",
            f"Overall success rate: {self.success_rate:.1%}",
            f"Total time: {self.total_time_seconds:.2f}s",
        ]
        if self.tier_batches:
            lines.append("Batches per tier: " + ", ".join(
                f"{name}={count}" for name, count in self.tier_batches.items()))
        if self.fallback_used > 0:
            lines.extend([
                "",
                f"⚠️ {self.fallback_used} paragraphs could not be translated and remain in the source language.",
            ])

        summary = "\n".join(lines)
        if log_callback:
            log_callback(summary)
        return summary
