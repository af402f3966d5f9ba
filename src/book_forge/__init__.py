"""Book Forge - long-form narrative generation with validated stages and quality gates."""

__version__ = "0.1.0"
