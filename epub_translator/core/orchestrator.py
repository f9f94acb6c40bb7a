"""
Translation orchestrator

Drives a whole document through the translation pipeline:

1. Paragraphs of each chapter are packed into token-budgeted batches.
2. Each batch is classified into a concurrency tier by the word count of its
   longest paragraph and dispatched under that tier's fair capacity limiter.
3. Every paragraph is looked up in translation memory first and sent to the
   provider on a miss. Paragraphs too long for one request are translated
   segment by segment and re-joined in order.
4. Once every chapter has had its first pass, failed paragraphs get one
   bounded retry pass; whatever still fails falls back to its source text,
   so no paragraph ever ends up empty.

Worker tasks only return outcomes. Paragraph objects are written by the
orchestrator coroutine after the tasks of a pass have been gathered.
"""

import asyncio
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple

from tqdm.auto import tqdm

from ..config import CONCURRENCY_TIERS, TRANSLATION_MEMORY_AUTO_OPTIMIZE
from ..utils.unified_logger import LogType, UnifiedLogger, get_logger
from .cancellation import CancellationToken, raise_if_cancelled
from .chunking import BatchUnit, ParagraphBatch, TokenChunker
from .concurrency import ConcurrencyTier, FairCapacityLimiter, build_tiers, classify_batch
from .epub.events import EventBus, EventType
from .epub.models import EpubChapter, EpubDocument, EpubParagraph
from .epub.translation_metrics import TranslationStatistics
from .exceptions import (
    LLMResponseError,
    RetryExhaustedError,
    TranslationCancelledError,
    TranslationError,
    TranslationMemoryError,
)
from .llm.base import TranslationProvider
from .llm.rate_limiter import RateLimiter
from .memory import TranslationMemory, TranslationMemoryEntry
from .models import TranslationMetrics, TranslationOptions
from .retry_manager import RetryConfig, RetryManager, RetryStrategy


class ParagraphState(Enum):
    """Where a paragraph ended up after a pass."""
    MEMORY_HIT = "memory_hit"
    TRANSLATED = "translated"
    FAILED = "failed"
    FALLBACK = "fallback"


@dataclass
class ParagraphOutcome:
    """Result of translating one paragraph, handed back to the orchestrator."""
    paragraph: EpubParagraph
    state: ParagraphState
    text: str = ""
    error: Optional[str] = None
    metrics: TranslationMetrics = field(default_factory=TranslationMetrics)
    retries: int = 0


@dataclass
class RetryItem:
    """A first-pass failure waiting for the retry pass."""
    chapter: EpubChapter
    unit: BatchUnit
    tier: ConcurrencyTier
    outcome: ParagraphOutcome


@dataclass
class ParagraphFailure:
    """A paragraph that kept failing and was left in the source language."""
    paragraph_id: str
    chapter_id: str
    tier: str
    error: str
    attempts: int

    def to_dict(self) -> Dict:
        return dataclasses.asdict(self)


@dataclass
class TranslationReport:
    """Everything a run produced besides the translated paragraphs themselves."""
    metrics: TranslationMetrics
    statistics: TranslationStatistics
    failures: List[ParagraphFailure] = field(default_factory=list)

    @property
    def fully_translated(self) -> bool:
        return not self.failures


def _trailing_whitespace(text: str) -> str:
    return text[len(text.rstrip()):]


class TranslationOrchestrator:
    """Translate every paragraph of a document under tiered concurrency limits."""

    def __init__(self,
                 provider: TranslationProvider,
                 memory: Optional[TranslationMemory] = None,
                 rate_limiter: Optional[RateLimiter] = None,
                 event_bus: Optional[EventBus] = None,
                 tiers: Sequence[Tuple] = CONCURRENCY_TIERS,
                 show_progress: bool = False,
                 auto_optimize_memory: bool = TRANSLATION_MEMORY_AUTO_OPTIMIZE,
                 logger: Optional[UnifiedLogger] = None):
        self.provider = provider
        self.memory = memory
        self.rate_limiter = rate_limiter or RateLimiter(0.0)
        self.event_bus = event_bus or EventBus()
        self.tiers: List[ConcurrencyTier] = build_tiers(
            (tier.name, tier.max_words, tier.workers, tier.release_delay)
            if isinstance(tier, ConcurrencyTier) else tier
            for tier in tiers
        )
        self.show_progress = show_progress
        self.auto_optimize_memory = auto_optimize_memory
        self.logger = logger or get_logger()

    async def translate_document(self, document: EpubDocument, target_language: str,
                                 options: Optional[TranslationOptions] = None,
                                 cancel_token: Optional[CancellationToken] = None) -> TranslationReport:
        """
        Translate all paragraphs of `document` in place.

        Args:
            document: Loaded document; paragraphs receive `translated_content`
            target_language: Language to translate into
            options: Run options (provider defaults when omitted)
            cancel_token: Stops new provider calls when cancelled

        Returns:
            TranslationReport with aggregated metrics, statistics and failures

        Raises:
            TranslationCancelledError: If the run was cancelled
        """
        options = dataclasses.replace(options or self.provider.default_options,
                                      target_language=target_language)
        source_language = options.source_language or document.source_language
        chunker = TokenChunker(options.max_tokens_per_request)
        limiters = {tier.name: FairCapacityLimiter(tier.workers) for tier in self.tiers}

        metrics = TranslationMetrics(provider=self.provider.name)
        statistics = TranslationStatistics(total_paragraphs=document.paragraph_count)
        failures: List[ParagraphFailure] = []
        retry_queue: List[RetryItem] = []

        self.logger.info(f"Translating '{document.title or document.file_path}'", LogType.TRANSLATION_START, {
            'source_lang': source_language,
            'target_lang': target_language,
            'provider': self.provider.name,
            'total_paragraphs': document.paragraph_count,
        })
        self.event_bus.emit(EventType.TRANSLATION_STARTED, total_paragraphs=document.paragraph_count,
                            source_language=source_language, target_language=target_language)

        progress = tqdm(total=document.paragraph_count, desc="Translating paragraphs", unit="para",
                        disable=not self.show_progress)
        try:
            for chapter in document.chapters:
                await self._translate_chapter(chapter, chunker, limiters, source_language, options,
                                              metrics, statistics, retry_queue, progress, cancel_token)
            if retry_queue:
                await self._retry_failures(retry_queue, limiters, source_language, options,
                                           metrics, statistics, failures, progress, cancel_token)
        except TranslationCancelledError as e:
            self.event_bus.emit(EventType.TRANSLATION_CANCELLED, reason=e.message)
            self.logger.warning(f"Translation cancelled: {e.message}")
            raise
        finally:
            progress.close()
            statistics.finalize()

        await self._finish_memory(cancel_token)

        document.target_language = target_language
        document.translation_metrics = metrics

        self.event_bus.emit(EventType.TRANSLATION_COMPLETED, **statistics.to_dict())
        self.logger.info(statistics.log_summary())
        return TranslationReport(metrics=metrics, statistics=statistics, failures=failures)

    # ------------------------------------------------------------------
    # Chapter and batch scheduling
    # ------------------------------------------------------------------

    async def _translate_chapter(self, chapter: EpubChapter, chunker: TokenChunker,
                                 limiters: Dict[str, FairCapacityLimiter], source_language: str,
                                 options: TranslationOptions, metrics: TranslationMetrics,
                                 statistics: TranslationStatistics, retry_queue: List[RetryItem],
                                 progress, cancel_token: Optional[CancellationToken]) -> None:
        """First pass over one chapter. Failed paragraphs are appended to `retry_queue`."""
        raise_if_cancelled(cancel_token)
        if not chapter.paragraphs:
            return

        self.event_bus.emit(EventType.CHAPTER_STARTED, chapter_id=chapter.id, title=chapter.title,
                            paragraphs=len(chapter.paragraphs))

        batches = chunker.batch_paragraphs(chapter.paragraphs)
        scheduled: List[Tuple[ParagraphBatch, ConcurrencyTier]] = []
        for batch in batches:
            tier = classify_batch(batch, self.tiers)
            statistics.record_batch(tier.name)
            scheduled.append((batch, tier))

        self.logger.debug(f"Chapter '{chapter.title}': {len(chapter.paragraphs)} paragraphs "
                          f"in {len(batches)} batches", LogType.CHUNK_INFO)

        tasks = [
            asyncio.ensure_future(self._run_batch(batch, tier, limiters[tier.name], source_language,
                                                  options, cancel_token))
            for batch, tier in scheduled
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        raise_if_cancelled(cancel_token)
        for result in results:
            if isinstance(result, BaseException):
                raise result

        for (batch, tier), outcomes in zip(scheduled, results):
            for unit, outcome in zip(batch.units, outcomes):
                if outcome.state == ParagraphState.FAILED:
                    statistics.first_pass_failures += 1
                    retry_queue.append(RetryItem(chapter, unit, tier, outcome))
                    self.event_bus.emit(EventType.PARAGRAPH_FAILED, paragraph_id=unit.paragraph.id,
                                        error=outcome.error)
                    continue
                self._apply(outcome, chapter, metrics, statistics)
                progress.update(1)

        self.event_bus.emit(EventType.CHAPTER_COMPLETED, chapter_id=chapter.id, title=chapter.title)

    async def _run_batch(self, batch: ParagraphBatch, tier: ConcurrencyTier, limiter: FairCapacityLimiter,
                         source_language: str, options: TranslationOptions,
                         cancel_token: Optional[CancellationToken]) -> List[ParagraphOutcome]:
        async with limiter.hold(tier.release_delay):
            outcomes = []
            for unit in batch.units:
                outcomes.append(await self._first_pass(unit, source_language, options, cancel_token))
        await self._flush_memory(options)
        return outcomes

    def _apply(self, outcome: ParagraphOutcome, chapter: EpubChapter,
               metrics: TranslationMetrics, statistics: TranslationStatistics) -> None:
        """Write an outcome onto its paragraph and account for it."""
        paragraph = outcome.paragraph
        metrics.add(outcome.metrics, unit_id=chapter.id)

        if outcome.state == ParagraphState.MEMORY_HIT:
            paragraph.translated_content = outcome.text
            statistics.record_memory_hit()
        elif outcome.state == ParagraphState.TRANSLATED:
            paragraph.translated_content = outcome.text
            statistics.record_success(outcome.retries)
            self.event_bus.emit(EventType.PARAGRAPH_TRANSLATED, paragraph_id=paragraph.id,
                                retries=outcome.retries)
        else:
            paragraph.translated_content = paragraph.content
            statistics.record_fallback(outcome.retries)
            self.event_bus.emit(EventType.FALLBACK_USED, paragraph_id=paragraph.id, error=outcome.error)

    # ------------------------------------------------------------------
    # Per-paragraph work
    # ------------------------------------------------------------------

    async def _first_pass(self, unit: BatchUnit, source_language: str, options: TranslationOptions,
                          cancel_token: Optional[CancellationToken]) -> ParagraphOutcome:
        paragraph = unit.paragraph

        cached = await self._lookup_memory(paragraph, source_language, options)
        if cached is not None:
            return ParagraphOutcome(paragraph, ParagraphState.MEMORY_HIT, text=cached)

        metrics = TranslationMetrics(provider=self.provider.name)
        try:
            text = await self._translate_unit(unit, source_language, options, metrics, cancel_token)
        except TranslationCancelledError:
            raise
        except TranslationError as e:
            return ParagraphOutcome(paragraph, ParagraphState.FAILED, error=e.message, metrics=metrics)
        except Exception as e:
            self.logger.warning(f"Unexpected error translating paragraph {paragraph.id}: {e}",
                                LogType.ERROR_DETAIL)
            return ParagraphOutcome(paragraph, ParagraphState.FAILED, error=f"{type(e).__name__}: {e}",
                                    metrics=metrics)

        await self._store_memory(paragraph, text, source_language, options, cancel_token)
        return ParagraphOutcome(paragraph, ParagraphState.TRANSLATED, text=text, metrics=metrics)

    async def _translate_unit(self, unit: BatchUnit, source_language: str, options: TranslationOptions,
                              metrics: TranslationMetrics, cancel_token: Optional[CancellationToken]) -> str:
        """
        Translate one paragraph segment by segment.

        Raises:
            LLMResponseError: If any segment fails or comes back empty
            TranslationCancelledError: If the run is cancelled
        """
        pieces = []
        for segment in unit.segments:
            raise_if_cancelled(cancel_token)
            await self.rate_limiter.acquire(cancel_token)
            raise_if_cancelled(cancel_token)

            result = await self.provider.translate(segment.rstrip(), source_language, options.target_language,
                                                   options, cancel_token)
            metrics.add(result.metrics)

            translated = (result.translated_content or "").strip() if result.success else ""
            if not translated:
                raise LLMResponseError(result.error or "Provider returned an empty translation",
                                       {'paragraph': unit.paragraph.id})
            pieces.append(translated + _trailing_whitespace(segment))

        return "".join(pieces)

    async def _lookup_memory(self, paragraph: EpubParagraph, source_language: str,
                             options: TranslationOptions) -> Optional[str]:
        if self.memory is None or not options.enable_translation_memory:
            return None
        try:
            entry = await self.memory.find_match(paragraph.content, source_language, options.target_language)
        except (TranslationMemoryError, OSError) as e:
            self.logger.warning(f"Translation memory lookup failed, translating instead: {e}", LogType.MEMORY)
            return None
        if entry is None or not entry.translated_text.strip():
            return None

        self.event_bus.emit(EventType.MEMORY_HIT, paragraph_id=paragraph.id)
        return entry.translated_text

    async def _store_memory(self, paragraph: EpubParagraph, text: str, source_language: str,
                            options: TranslationOptions, cancel_token: Optional[CancellationToken]) -> None:
        if self.memory is None or not options.enable_translation_memory:
            return
        entry = TranslationMemoryEntry(
            source_text=paragraph.content,
            translated_text=text,
            source_language=source_language,
            target_language=options.target_language,
            use_count=1,
        )
        try:
            await self.memory.store(entry, cancel_token)
        except (TranslationMemoryError, OSError) as e:
            self.logger.warning(f"Could not store translation in memory: {e}", LogType.MEMORY)

    async def _flush_memory(self, options: TranslationOptions) -> None:
        if self.memory is None or not options.enable_translation_memory:
            return
        try:
            await self.memory.flush()
        except (TranslationMemoryError, OSError) as e:
            self.logger.warning(f"Could not save translation memory: {e}", LogType.MEMORY)

    # ------------------------------------------------------------------
    # Retry pass
    # ------------------------------------------------------------------

    async def _retry_failures(self, queue: List[RetryItem], limiters: Dict[str, FairCapacityLimiter],
                              source_language: str, options: TranslationOptions,
                              metrics: TranslationMetrics, statistics: TranslationStatistics,
                              failures: List[ParagraphFailure], progress,
                              cancel_token: Optional[CancellationToken]) -> None:
        self.logger.info(f"Retrying {len(queue)} failed paragraphs", LogType.RETRY)

        tasks = [
            asyncio.ensure_future(self._retry_unit(item.unit, item.tier, limiters[item.tier.name], item.outcome,
                                                   source_language, options, statistics, cancel_token))
            for item in queue
        ]
        results = await asyncio.gather(*tasks, return_exceptions=True)
        raise_if_cancelled(cancel_token)
        for result in results:
            if isinstance(result, BaseException):
                raise result

        for item, outcome in zip(queue, results):
            paragraph = item.unit.paragraph
            if outcome.state == ParagraphState.FALLBACK:
                failures.append(ParagraphFailure(
                    paragraph_id=paragraph.id,
                    chapter_id=item.chapter.id,
                    tier=item.tier.name,
                    error=outcome.error or "unknown error",
                    attempts=outcome.retries + 1,
                ))
                self.logger.warning(f"Paragraph {paragraph.id} kept its original text",
                                    LogType.ERROR_DETAIL,
                                    {'details': outcome.error, 'paragraph': paragraph.content[:80]})
            self._apply(outcome, item.chapter, metrics, statistics)
            progress.update(1)

    async def _retry_unit(self, unit: BatchUnit, tier: ConcurrencyTier, limiter: FairCapacityLimiter,
                          failed: ParagraphOutcome, source_language: str, options: TranslationOptions,
                          statistics: TranslationStatistics,
                          cancel_token: Optional[CancellationToken]) -> ParagraphOutcome:
        """
        Retry one first-pass failure.

        A failure gets `max_retries` attempts after its first-pass call, so a
        paragraph that never succeeds costs 1 + max_retries provider calls.
        Errors marked non-recoverable end the retries early.
        """
        paragraph = unit.paragraph
        metrics = failed.metrics
        if options.max_retries <= 0:
            return ParagraphOutcome(paragraph, ParagraphState.FALLBACK, error=failed.error, metrics=metrics)

        retry_manager = RetryManager(
            default_config=RetryConfig(
                max_attempts=options.max_retries,
                initial_delay=options.retry_delay,
                max_delay=max(options.retry_delay, 60.0),
                strategy=RetryStrategy.FIXED,
                delay_first_attempt=True,
            ),
            logger=self.logger,
        )
        attempts = 0

        def on_retry(error: Optional[Exception], attempt: int) -> None:
            nonlocal attempts
            attempts = attempt
            statistics.retry_attempts += 1
            metrics.retry_count += 1
            self.event_bus.emit(EventType.PARAGRAPH_RETRY, paragraph_id=paragraph.id, attempt=attempt,
                                max_attempts=options.max_retries)

        async def attempt_translation() -> str:
            async with limiter.hold(tier.release_delay):
                return await self._translate_unit(unit, source_language, options, metrics, cancel_token)

        try:
            text = await retry_manager.execute_with_retry(
                attempt_translation,
                operation_id=paragraph.id,
                on_retry=on_retry,
                cancel_token=cancel_token,
            )
        except RetryExhaustedError as e:
            original = e.original_error
            if isinstance(original, TranslationError):
                error = original.message
            elif original is not None:
                error = f"{type(original).__name__}: {original}"
            else:
                error = e.message
            return ParagraphOutcome(paragraph, ParagraphState.FALLBACK, error=error, metrics=metrics,
                                    retries=attempts)
        except TranslationCancelledError:
            raise
        except TranslationError as e:
            # Non-recoverable, e.g. rejected credentials
            return ParagraphOutcome(paragraph, ParagraphState.FALLBACK, error=e.message, metrics=metrics,
                                    retries=attempts)

        await self._store_memory(paragraph, text, source_language, options, cancel_token)
        return ParagraphOutcome(paragraph, ParagraphState.TRANSLATED, text=text, metrics=metrics,
                                retries=attempts)

    # ------------------------------------------------------------------
    # Memory maintenance
    # ------------------------------------------------------------------

    async def _finish_memory(self, cancel_token: Optional[CancellationToken]) -> None:
        if self.memory is None:
            return
        await self.memory.flush(cancel_token)
        if self.auto_optimize_memory:
            await self.memory.optimize_storage()
