"""
Data models shared by the translation providers and the orchestrator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class QualityCheckLevel(Enum):
    """How strictly translated output is checked (recorded, not evaluated)."""
    BASIC = "basic"
    STANDARD = "standard"
    STRICT = "strict"


@dataclass
class TranslationOptions:
    """Per-run translation options passed to every provider call."""

    source_language: str = "en"
    target_language: str = "zh"
    max_tokens_per_request: int = 2000
    use_contextual_hints: bool = True
    enable_translation_memory: bool = True
    max_retries: int = 3
    retry_delay: float = 2.0
    preserve_formatting: bool = True
    quality_check_level: QualityCheckLevel = QualityCheckLevel.STANDARD
    custom_terminology: Dict[str, str] = field(default_factory=dict)
    temperature: float = 0.3
    top_p: float = 0.95

    def to_dict(self) -> Dict[str, Any]:
        return {
            'source_language': self.source_language,
            'target_language': self.target_language,
            'max_tokens_per_request': self.max_tokens_per_request,
            'use_contextual_hints': self.use_contextual_hints,
            'enable_translation_memory': self.enable_translation_memory,
            'max_retries': self.max_retries,
            'retry_delay': self.retry_delay,
            'preserve_formatting': self.preserve_formatting,
            'quality_check_level': self.quality_check_level.value,
            'custom_terminology': dict(self.custom_terminology),
            'temperature': self.temperature,
            'top_p': self.top_p,
        }


@dataclass
class TranslationMetrics:
    """Token, timing and cost figures for one call or an aggregated run."""

    source_token_count: int = 0
    target_token_count: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    character_count: int = 0
    processing_time: float = 0.0
    retry_count: int = 0
    cost: float = 0.0
    provider: str = ""
    chapter_token_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def add(self, other: 'TranslationMetrics', unit_id: Optional[str] = None) -> None:
        """Accumulate another metrics object into this one.

        Args:
            other: Metrics to add
            unit_id: When given, the other metrics' total tokens are also
                credited to this unit in the per-unit breakdown
        """
        self.source_token_count += other.source_token_count
        self.target_token_count += other.target_token_count
        self.prompt_tokens += other.prompt_tokens
        self.completion_tokens += other.completion_tokens
        self.character_count += other.character_count
        self.processing_time += other.processing_time
        self.retry_count += other.retry_count
        self.cost += other.cost
        if not self.provider:
            self.provider = other.provider
        for key, tokens in other.chapter_token_counts.items():
            self.chapter_token_counts[key] = self.chapter_token_counts.get(key, 0) + tokens
        if unit_id is not None:
            self.chapter_token_counts[unit_id] = (
                self.chapter_token_counts.get(unit_id, 0) + other.total_tokens
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'provider': self.provider,
            'source_token_count': self.source_token_count,
            'target_token_count': self.target_token_count,
            'prompt_tokens': self.prompt_tokens,
            'completion_tokens': self.completion_tokens,
            'total_tokens': self.total_tokens,
            'character_count': self.character_count,
            'processing_time': round(self.processing_time, 3),
            'retry_count': self.retry_count,
            'cost': round(self.cost, 6),
            'chapter_token_counts': dict(self.chapter_token_counts),
        }


@dataclass
class TranslationResult:
    """Outcome of a single provider translate() call.

    A result with success=False carries the error message instead of raising,
    so the orchestrator can treat thrown and embedded failures the same way.
    """

    original_content: str
    translated_content: str = ""
    success: bool = False
    error: Optional[str] = None
    quality_score: Optional[float] = None
    quality_issues: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    metrics: TranslationMetrics = field(default_factory=TranslationMetrics)
