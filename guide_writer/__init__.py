"""Guide Writer - certification study guides from staged LLM generation."""

__version__ = "0.1.0"
