"""
Command-line entry point for EPUB translation

Usage:
    python translate.py <input.epub> <output.epub> <source_lang> [target_lang]
"""
import sys

from epub_translator.cli import main


if __name__ == "__main__":
    sys.exit(main())
