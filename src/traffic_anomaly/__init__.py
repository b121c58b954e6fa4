"""
Network traffic anomaly training & scoring pipeline.

Min-max normalized traffic features fed to a gradient-boosted tree
classifier (LightGBM/XGBoost), with a configurable decision threshold.
"""

__version__ = "1.0.0"
__author__ = "Traffic Anomaly Pipeline Team"
