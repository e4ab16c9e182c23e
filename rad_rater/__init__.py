"""
Radiology Impression Rater

Deterministic case sampling, blinded model ordering and a two-phase rating
workflow for radiology report impressions.
"""

__version__ = "0.4.0"
