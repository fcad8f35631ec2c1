"""
crux_audit/services package marker.
"""

from crux_audit.services.fetch_aggregator import FetchAggregator
from crux_audit.services.metric_extractor import extract_form_factor_analysis

__all__ = [
    "FetchAggregator",
    "extract_form_factor_analysis",
]
