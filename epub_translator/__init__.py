"""Structure-preserving EPUB translation with LLM providers."""

__version__ = "1.0.0"
