#!/usr/bin/env python3
"""
Main Demo Script - Trains on synthetic traffic and scores two sample records.
"""

import sys
import os
import tempfile

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from src.traffic_anomaly.config_loader import prepare_config
from src.traffic_anomaly.pipeline import run_prediction, run_training, setup_logging
from data.traffic_generator import TrafficGenerator


def main():
    print("=" * 60)
    print("Network Traffic Anomaly Detection")
    print("=" * 60)

    out_dir = tempfile.mkdtemp(prefix="traffic_anomaly_")
    config = prepare_config({
        "labels": {"positive_class": "normal"},
        "prediction": {"samples": [
            {"record_id": "small-flow", "packet_count": 150, "average_packet_size": 500},
            {"record_id": "burst", "packet_count": 400, "average_packet_size": 1500},
        ]},
        "data": {"id_column": "record_id"},
        "logging": {"level": "WARNING"},
        "paths": {
            "output_dir": out_dir,
            "model_dir": os.path.join(out_dir, "model"),
            "metrics_dir": os.path.join(out_dir, "metrics"),
            "reports_dir": os.path.join(out_dir, "reports"),
        },
    })
    setup_logging(config)

    print("\nGenerating synthetic traffic (800 normal / 200 anomalous rows)...")
    frame = TrafficGenerator(seed=42).generate_frame("packet_basic", 800, 200)

    print("\nTraining...")
    results = run_training(config, frame)

    print("\nReloading the saved model and scoring the samples...")
    run_prediction(config)

    print(f"\nReport: {results['report_path']}")
    return results


if __name__ == "__main__":
    main()
