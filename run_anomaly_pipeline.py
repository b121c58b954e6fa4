"""
Network Traffic Anomaly Detection Pipeline - Entry Point.

Usage:
    # Generate a synthetic training set
    python -m data.traffic_generator --variant packet_basic --output data/traffic.csv

    # Cross-validate, train, evaluate and save the model
    python run_anomaly_pipeline.py train

    # Score the sample rows from the config
    python run_anomaly_pipeline.py predict

    # Score a CSV of rows with a custom threshold
    python run_anomaly_pipeline.py predict --input rows.csv --threshold 0.7

    # Use XGBoost and a custom config
    python run_anomaly_pipeline.py train --config config/anomaly_config.yaml --model xgboost
"""

import sys
import os

# Ensure project root is on path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.traffic_anomaly.pipeline import main

if __name__ == "__main__":
    sys.exit(main())
