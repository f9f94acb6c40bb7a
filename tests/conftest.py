"""
Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and provides common fixtures
and configuration for all test modules.
"""

import sys
from pathlib import Path

# Project root for the package, tests/ for the fixtures helpers
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))

import pytest

from epub_translator.core.models import TranslationOptions
from epub_translator.utils.unified_logger import LogLevel, UnifiedLogger
from fixtures.sample_epub import build_simple_epub


@pytest.fixture
def quiet_logger():
    """Logger that records entries instead of printing them."""
    entries = []
    logger = UnifiedLogger(console_output=False, enable_colors=False, min_level=LogLevel.DEBUG,
                           storage_callback=entries.append)
    logger.entries = entries
    return logger


@pytest.fixture
def fast_options():
    """Translation options with no retry delay."""
    return TranslationOptions(source_language="en", target_language="zh", retry_delay=0.0)


@pytest.fixture
def simple_epub(tmp_path):
    """Path to a two-chapter sample EPUB."""
    return build_simple_epub(tmp_path / "simple.epub")


@pytest.fixture
def sample_chapter_markup():
    return '''<?xml version="1.0" encoding="utf-8"?>
<!DOCTYPE html>
<html xmlns="http://www.w3.org/1999/xhtml">
<head><title>Sample</title><style>p { color: red; }</style></head>
<body>
  <h1>The Beginning</h1>
  <p>First paragraph with <em>emphasis</em> inside.</p>
  <blockquote><p>A quoted line.</p></blockquote>
  <ul><li>Item one</li><li>Item two</li></ul>
  <pre>code block</pre>
  <p>   </p>
</body>
</html>'''
