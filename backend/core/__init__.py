"""Core analytics for indicators, models and predictions.

This package contains pure computation with no I/O dependencies (no
network or storage access). It is consumed by the service layer in app/.
"""
