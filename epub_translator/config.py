"""
Centralized configuration
"""
import os
import logging
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from dotenv import load_dotenv

from epub_translator.core.exceptions import ConfigurationError

# Setup debug logger for configuration
_config_logger = logging.getLogger('config')

_debug_mode = os.getenv('DEBUG_MODE', 'false').lower() == 'true'
if _debug_mode:
    logging.basicConfig(level=logging.DEBUG, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    _config_logger.setLevel(logging.DEBUG)

_env_file = Path.cwd() / '.env'
if _env_file.exists():
    load_dotenv(_env_file)
    _config_logger.debug(f"Loaded .env from: {_env_file.absolute()}")
else:
    _config_logger.warning(
        f".env configuration file not found in {Path.cwd()}, using environment and defaults "
        f"(copy .env.example to .env to configure)"
    )


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, str(default)).strip().lower() in ('true', '1', 'yes', 'on')


# LLM provider settings
LLM_PROVIDER = os.getenv('LLM_PROVIDER', 'openai').lower()
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY', '')
OPENAI_MODEL = os.getenv('OPENAI_MODEL', 'gpt-4o-mini')
OPENAI_API_ENDPOINT = os.getenv('OPENAI_API_ENDPOINT', 'https://api.openai.com/v1/chat/completions')
AZURE_OPENAI_ENDPOINT = os.getenv('AZURE_OPENAI_ENDPOINT', '')
AZURE_OPENAI_API_KEY = os.getenv('AZURE_OPENAI_API_KEY', '')
AZURE_OPENAI_DEPLOYMENT = os.getenv('AZURE_OPENAI_DEPLOYMENT', '')
AZURE_OPENAI_API_VERSION = os.getenv('AZURE_OPENAI_API_VERSION', '2024-02-15-preview')
REQUEST_TIMEOUT = int(os.getenv('REQUEST_TIMEOUT', '120'))
SUPPORTED_PROVIDERS = ('openai', 'azure')

# Translation defaults
DEFAULT_SOURCE_LANGUAGE = os.getenv('DEFAULT_SOURCE_LANGUAGE', 'en')
DEFAULT_TARGET_LANGUAGE = os.getenv('DEFAULT_TARGET_LANGUAGE', 'zh')
MAX_TOKENS_PER_REQUEST = int(os.getenv('MAX_TOKENS_PER_REQUEST', '2000'))
MAX_RETRIES = int(os.getenv('MAX_RETRIES', '3'))
RETRY_DELAY_SECONDS = float(os.getenv('RETRY_DELAY_SECONDS', '2.0'))
TEMPERATURE = float(os.getenv('TEMPERATURE', '0.3'))
TOP_P = float(os.getenv('TOP_P', '0.95'))
PRESERVE_FORMATTING = _env_bool('PRESERVE_FORMATTING', True)
USE_CONTEXTUAL_HINTS = _env_bool('USE_CONTEXTUAL_HINTS', True)
QUALITY_CHECK_LEVEL = os.getenv('QUALITY_CHECK_LEVEL', 'standard').lower()
MIN_REQUEST_INTERVAL_SECONDS = float(os.getenv('MIN_REQUEST_INTERVAL_SECONDS', '0.0'))

# Translation memory
TRANSLATION_MEMORY_ENABLED = _env_bool('TRANSLATION_MEMORY_ENABLED', True)
TRANSLATION_MEMORY_DIR = os.getenv('TRANSLATION_MEMORY_DIR', 'translation_memory')
TRANSLATION_MEMORY_MIN_SIMILARITY = float(os.getenv('TRANSLATION_MEMORY_MIN_SIMILARITY', '0.9'))
TRANSLATION_MEMORY_MAX_RESULTS = int(os.getenv('TRANSLATION_MEMORY_MAX_RESULTS', '5'))
TRANSLATION_MEMORY_RETENTION_DAYS = int(os.getenv('TRANSLATION_MEMORY_RETENTION_DAYS', '90'))
TRANSLATION_MEMORY_AUTO_OPTIMIZE = _env_bool('TRANSLATION_MEMORY_AUTO_OPTIMIZE', True)
TRANSLATION_MEMORY_FILENAME = 'translation_memory.json'

# Logging
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_DIRECTORY = os.getenv('LOG_DIRECTORY', 'logs')
FILE_LOGGING = _env_bool('FILE_LOGGING', False)
DEBUG_MODE = _debug_mode

# Concurrency tiers, consulted in ascending order of the word-count threshold.
# (name, max paragraph words, concurrent workers, delay in seconds before a worker releases its slot)
CONCURRENCY_TIERS: List[Tuple[str, Optional[int], int, float]] = [
    ("short", 50, 8, 0.10),
    ("medium", 100, 6, 0.15),
    ("long", 200, 4, 0.20),
    ("very_long", None, 2, 0.25),
]

# USD per 1K tokens (prompt, completion)
MODEL_PRICING: Dict[str, Tuple[float, float]] = {
    "gpt-4o-mini": (0.00015, 0.0006),
    "gpt-4o": (0.0025, 0.01),
    "gpt-4-turbo": (0.01, 0.03),
    "gpt-4": (0.03, 0.06),
    "gpt-3.5-turbo": (0.0005, 0.0015),
}

# EPUB namespaces
NAMESPACES = {
    'opf': 'http://www.idpf.org/2007/opf',
    'dc': 'http://purl.org/dc/elements/1.1/',
    'xhtml': 'http://www.w3.org/1999/xhtml',
    'epub': 'http://www.idpf.org/2007/ops',
    'ncx': 'http://www.daisy.org/z3986/2005/ncx/',
    'container': 'urn:oasis:names:tc:opendocument:xmlns:container',
}


def estimate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> float:
    """Estimate the USD cost of a call from MODEL_PRICING (0.0 for unknown models)."""
    # Longest prefix first so "gpt-4o-mini" wins over "gpt-4o" and "gpt-4"
    for name in sorted(MODEL_PRICING, key=len, reverse=True):
        if model.startswith(name):
            prompt_price, completion_price = MODEL_PRICING[name]
            return (prompt_tokens / 1000.0) * prompt_price + (completion_tokens / 1000.0) * completion_price
    return 0.0


@dataclass
class AppSettings:
    """Settings for one CLI run, built from the environment and overridden by arguments"""

    llm_provider: str = LLM_PROVIDER
    openai_api_key: str = OPENAI_API_KEY
    openai_model: str = OPENAI_MODEL
    openai_endpoint: str = OPENAI_API_ENDPOINT
    azure_endpoint: str = AZURE_OPENAI_ENDPOINT
    azure_api_key: str = AZURE_OPENAI_API_KEY
    azure_deployment: str = AZURE_OPENAI_DEPLOYMENT
    azure_api_version: str = AZURE_OPENAI_API_VERSION
    timeout: int = REQUEST_TIMEOUT

    max_tokens_per_request: int = MAX_TOKENS_PER_REQUEST
    max_retries: int = MAX_RETRIES
    retry_delay: float = RETRY_DELAY_SECONDS
    temperature: float = TEMPERATURE
    top_p: float = TOP_P
    preserve_formatting: bool = PRESERVE_FORMATTING
    use_contextual_hints: bool = USE_CONTEXTUAL_HINTS
    quality_check_level: str = QUALITY_CHECK_LEVEL
    min_request_interval: float = MIN_REQUEST_INTERVAL_SECONDS
    custom_terminology: Dict[str, str] = field(default_factory=dict)

    memory_enabled: bool = TRANSLATION_MEMORY_ENABLED
    memory_directory: str = TRANSLATION_MEMORY_DIR
    memory_min_similarity: float = TRANSLATION_MEMORY_MIN_SIMILARITY
    memory_max_results: int = TRANSLATION_MEMORY_MAX_RESULTS
    memory_retention_days: int = TRANSLATION_MEMORY_RETENTION_DAYS
    memory_auto_optimize: bool = TRANSLATION_MEMORY_AUTO_OPTIMIZE

    @classmethod
    def from_env(cls) -> 'AppSettings':
        """Settings from the environment (and .env) as loaded at import time"""
        return cls()

    @classmethod
    def from_cli_args(cls, args) -> 'AppSettings':
        """Create settings from parsed CLI arguments"""
        settings = cls.from_env()
        if getattr(args, 'provider', None):
            settings.llm_provider = args.provider.lower()
        if getattr(args, 'model', None):
            settings.openai_model = args.model
        if getattr(args, 'max_tokens', None):
            settings.max_tokens_per_request = args.max_tokens
        if getattr(args, 'no_memory', False):
            settings.memory_enabled = False
        return settings

    def validate(self) -> None:
        """Raise ConfigurationError listing every invalid setting."""
        problems = []
        if self.llm_provider not in SUPPORTED_PROVIDERS:
            problems.append(f"unknown LLM_PROVIDER '{self.llm_provider}' "
                            f"(supported: {', '.join(SUPPORTED_PROVIDERS)})")
        elif self.llm_provider == 'openai' and not self.openai_api_key:
            problems.append("OPENAI_API_KEY is required for the openai provider")
        elif self.llm_provider == 'azure':
            if not self.azure_api_key:
                problems.append("AZURE_OPENAI_API_KEY is required for the azure provider")
            if not self.azure_endpoint:
                problems.append("AZURE_OPENAI_ENDPOINT is required for the azure provider")
            if not self.azure_deployment:
                problems.append("AZURE_OPENAI_DEPLOYMENT is required for the azure provider")
        if self.max_tokens_per_request <= 0:
            problems.append("MAX_TOKENS_PER_REQUEST must be positive")
        if self.max_retries < 0:
            problems.append("MAX_RETRIES cannot be negative")
        if self.retry_delay < 0:
            problems.append("RETRY_DELAY_SECONDS cannot be negative")
        if not 0.0 <= self.temperature <= 2.0:
            problems.append("TEMPERATURE must be between 0 and 2")
        if not 0.0 < self.top_p <= 1.0:
            problems.append("TOP_P must be in (0, 1]")
        if not 0.0 <= self.memory_min_similarity <= 1.0:
            problems.append("TRANSLATION_MEMORY_MIN_SIMILARITY must be between 0 and 1")
        if self.quality_check_level not in ('basic', 'standard', 'strict'):
            problems.append(f"unknown QUALITY_CHECK_LEVEL '{self.quality_check_level}'")

        if problems:
            raise ConfigurationError(
                "Invalid configuration: " + "; ".join(problems),
                context={'provider': self.llm_provider}
            )

    def to_translation_options(self, source_language: str, target_language: str):
        """Build the TranslationOptions for a run"""
        from epub_translator.core.models import QualityCheckLevel, TranslationOptions

        return TranslationOptions(
            source_language=source_language,
            target_language=target_language,
            max_tokens_per_request=self.max_tokens_per_request,
            use_contextual_hints=self.use_contextual_hints,
            enable_translation_memory=self.memory_enabled,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            preserve_formatting=self.preserve_formatting,
            quality_check_level=QualityCheckLevel(self.quality_check_level),
            custom_terminology=dict(self.custom_terminology),
            temperature=self.temperature,
            top_p=self.top_p,
        )

    def summary(self) -> str:
        """Human-readable configuration summary (secrets masked)"""
        def mask(secret: str) -> str:
            return f"{secret[:4]}...{secret[-4:]}" if len(secret) > 8 else ("set" if secret else "not set")

        lines = [
            "Configuration:",
            f"  Provider:              {self.llm_provider}",
        ]
        if self.llm_provider == 'azure':
            lines += [
                f"  Azure endpoint:        {self.azure_endpoint or 'not set'}",
                f"  Azure deployment:      {self.azure_deployment or 'not set'}",
                f"  Azure API version:     {self.azure_api_version}",
                f"  Azure API key:         {mask(self.azure_api_key)}",
            ]
        else:
            lines += [
                f"  OpenAI model:          {self.openai_model}",
                f"  OpenAI endpoint:       {self.openai_endpoint}",
                f"  OpenAI API key:        {mask(self.openai_api_key)}",
            ]
        lines += [
            f"  Max tokens/request:    {self.max_tokens_per_request}",
            f"  Max retries:           {self.max_retries}",
            f"  Retry delay:           {self.retry_delay}s",
            f"  Temperature / top_p:   {self.temperature} / {self.top_p}",
            f"  Translation memory:    {'enabled' if self.memory_enabled else 'disabled'} "
            f"({self.memory_directory}, min similarity {self.memory_min_similarity})",
            "  Concurrency tiers:",
        ]
        for name, max_words, workers, delay in CONCURRENCY_TIERS:
            limit = f"<= {max_words} words" if max_words is not None else "longer"
            lines.append(f"    {name:<10} {limit:<16} {workers} workers, {int(delay * 1000)} ms delay")
        return "\n".join(lines)
