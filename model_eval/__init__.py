"""Benchmark execution and evaluation service for LLM providers."""

__version__ = "0.1.0"
