"""
Network Traffic Anomaly Detection

Gradient-boosted tree classifier that flags anomalous network traffic
from per-record traffic summary features.
"""

__version__ = "1.0.0"
__author__ = "Network Traffic Anomaly Detection Team"
