"""
Command-line interface for EPUB translation

    translate.py <input> <output> <source_lang> [target_lang]
"""
import argparse
import asyncio
import signal
import sys
from typing import List, Optional

from .config import DEFAULT_TARGET_LANGUAGE, AppSettings
from .core.cancellation import CancellationToken
from .core.epub import EpubError, EpubProcessor
from .core.exceptions import ConfigurationError, TranslationCancelledError
from .core.llm import RateLimiter, create_provider_from_settings
from .core.memory import TranslationMemory
from .core.orchestrator import TranslationOrchestrator
from .utils.unified_logger import LogType, UnifiedLogger, setup_cli_logger

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130


class _HelpAction(argparse.Action):
    """Print usage plus the effective configuration, then exit 0."""

    def __init__(self, option_strings, dest=argparse.SUPPRESS, default=argparse.SUPPRESS, help=None):
        super().__init__(option_strings=option_strings, dest=dest, default=default, nargs=0, help=help)

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        print()
        print(AppSettings.from_env().summary())
        parser.exit(EXIT_OK)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="translate.py",
        description="Translate an EPUB book with an LLM while preserving its markup.",
        add_help=False,
    )
    parser.add_argument("input", help="Path to the input EPUB file.")
    parser.add_argument("output", help="Path of the translated EPUB to write.")
    parser.add_argument("source_lang", help="Source language code (e.g. en).")
    parser.add_argument("target_lang", nargs="?", default=DEFAULT_TARGET_LANGUAGE,
                        help=f"Target language code (default: {DEFAULT_TARGET_LANGUAGE}).")
    parser.add_argument("--provider", choices=["openai", "azure"], default=None,
                        help="LLM provider (default: LLM_PROVIDER from the environment).")
    parser.add_argument("--model", default=None, help="OpenAI model name (default: OPENAI_MODEL).")
    parser.add_argument("--max-tokens", dest="max_tokens", type=int, default=None,
                        help="Maximum estimated tokens per request (default: MAX_TOKENS_PER_REQUEST).")
    parser.add_argument("--no-memory", dest="no_memory", action="store_true",
                        help="Disable the translation memory for this run.")
    parser.add_argument("--no-color", dest="no_color", action="store_true", help="Disable colored output.")
    parser.add_argument("--no-progress", dest="no_progress", action="store_true",
                        help="Do not show the progress bar.")
    parser.add_argument("-h", "--help", action=_HelpAction,
                        help="Show this message and the configuration summary, then exit.")
    return parser


def _install_interrupt_handler(cancel_token: CancellationToken) -> bool:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_token.cancel, "Interrupted by user")
    except (NotImplementedError, RuntimeError):
        # Windows event loops do not support signal handlers
        return False
    return True


async def run_translation(args: argparse.Namespace, settings: AppSettings, logger: UnifiedLogger,
                          cancel_token: Optional[CancellationToken] = None) -> int:
    """Load, translate and save one book. Returns the process exit code."""
    cancel_token = cancel_token or CancellationToken()
    handler_installed = _install_interrupt_handler(cancel_token)

    processor = EpubProcessor(logger=logger)
    try:
        document = await processor.load(args.input)
    except EpubError as e:
        logger.error(f"Could not load '{args.input}'", LogType.ERROR_DETAIL, {'details': str(e)})
        return EXIT_FAILURE
    if not processor.validate_structure(document):
        return EXIT_FAILURE

    options = settings.to_translation_options(args.source_lang, args.target_lang)
    provider = create_provider_from_settings(settings, logger=logger, default_options=options)

    memory = None
    if settings.memory_enabled:
        memory = await TranslationMemory.open(
            settings.memory_directory,
            cancel_token,
            min_similarity=settings.memory_min_similarity,
            max_results=settings.memory_max_results,
            retention_days=settings.memory_retention_days,
            logger=logger,
        )

    orchestrator = TranslationOrchestrator(
        provider,
        memory=memory,
        rate_limiter=RateLimiter(settings.min_request_interval),
        show_progress=not args.no_progress,
        auto_optimize_memory=settings.memory_auto_optimize,
        logger=logger,
    )

    try:
        report = await orchestrator.translate_document(document, args.target_lang, options, cancel_token)
    except TranslationCancelledError:
        logger.warning("Translation cancelled, no output was written")
        return EXIT_CANCELLED
    finally:
        await provider.close()
        if handler_installed:
            asyncio.get_running_loop().remove_signal_handler(signal.SIGINT)

    if not await processor.save_translated_epub(document, args.output, args.target_lang):
        return EXIT_FAILURE
    if not processor.validate_output(args.output):
        return EXIT_FAILURE

    print(report.statistics.log_summary())
    metrics = report.metrics
    print(f"Tokens: prompt={metrics.prompt_tokens}, completion={metrics.completion_tokens}, "
          f"total={metrics.total_tokens}")
    print(f"Estimated cost: ${metrics.cost:.4f}")
    print(f"Provider time: {metrics.processing_time:.2f}s, retries: {metrics.retry_count}")

    logger.info("Translation Completed", LogType.TRANSLATION_END, {
        'output_file': args.output,
        'stats': {
            'translated': report.statistics.translated,
            'fallback': report.statistics.fallback_used,
        },
    })
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logger = setup_cli_logger(enable_colors=not args.no_color)

    settings = AppSettings.from_cli_args(args)
    try:
        settings.validate()
    except ConfigurationError as e:
        logger.error(e.message, LogType.ERROR_DETAIL, {'details': settings.summary()})
        return EXIT_FAILURE

    try:
        return asyncio.run(run_translation(args, settings, logger))
    except KeyboardInterrupt:
        logger.warning("Translation interrupted, no output was written")
        return EXIT_CANCELLED


if __name__ == "__main__":
    sys.exit(main())
