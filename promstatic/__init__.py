"""Metric values, metric vectors, a collector registry and static label trees."""

__version__ = "0.1.0"