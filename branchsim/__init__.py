"""Trace-driven BTB branch predictor simulator: the predictor model and a command-line trace runner."""

__version__ = "0.1.0"
__all__ = ["predictor", "cli"]