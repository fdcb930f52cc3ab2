"""
toktrack - token usage tracker for AI coding assistants.

Aggregates JSONL usage logs into daily, weekly and monthly summaries and
caches settled days between runs.
"""

__version__ = "0.1.0"
