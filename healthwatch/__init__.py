"""
Per-user baseline and anomaly detection for daily health metrics.
"""

__version__ = "0.1.0"
