"""Safe Link: explainable rule-based URL safety scoring."""

__version__ = "1.0.0"
