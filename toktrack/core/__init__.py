"""
Core modules for toktrack.

This package contains log parsing, aggregation, pricing, percentile
bucketing and the usage loading pipeline.
"""
