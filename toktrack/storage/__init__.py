"""
Storage layer: data models, log sources and the daily summary cache.
"""
