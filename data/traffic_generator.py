"""
Synthetic Traffic Generator - Generates labelled traffic feature rows for testing.
"""

import argparse
import os
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from src.traffic_anomaly.records import FEATURE_VARIANTS


class TrafficGenerator:
    """Generates normal and anomalous traffic summary rows."""

    # (low, high) uniform ranges per attribute: normal, anomaly
    RANGES: Dict[str, Tuple[Tuple[float, float], Tuple[float, float]]] = {
        "packet_count": ((50, 250), (350, 1000)),
        "average_packet_size": ((200, 800), (1200, 1500)),
        "packet_duration": ((0.5, 5.0), (0.01, 0.3)),
        "inter_packet_interval": ((0.01, 0.1), (0.0001, 0.005)),
        "packet_frequency": ((10, 100), (500, 5000)),
        "source_destination_ratio": ((0.5, 2.0), (5.0, 50.0)),
        "local_ip": ((1, 10), (1, 10)),
        "flows": ((1, 20), (50, 200)),
    }

    COMMON_ASNS = [701, 1239, 3356, 7018, 15169]
    RARE_ASNS = [16755, 3561, 7132, 4134, 9009]

    def __init__(self, seed: int = 42):
        self.rng = np.random.default_rng(seed)

    def _uniform(self, column: str, anomalous: bool, n: int) -> np.ndarray:
        low, high = self.RANGES[column][1 if anomalous else 0]
        return self.rng.uniform(low, high, size=n)

    def _generate(self, columns: List[str], anomalous: bool, n: int) -> pd.DataFrame:
        data = {}
        for col in columns:
            if col == "total_data_sent":
                continue
            if col == "remote_asn":
                pool = self.RARE_ASNS if anomalous else self.COMMON_ASNS
                data[col] = self.rng.choice(pool, size=n).astype(float)
            elif col in ("packet_count", "local_ip", "flows"):
                data[col] = np.round(self._uniform(col, anomalous, n))
            else:
                data[col] = self._uniform(col, anomalous, n)
        if "total_data_sent" in columns:
            data["total_data_sent"] = data["packet_count"] * data["average_packet_size"]
        return pd.DataFrame(data)[columns]

    def generate_frame(
        self,
        variant: str = "packet_basic",
        n_normal: int = 200,
        n_anomaly: int = 50,
        positive_class: str = "normal",
    ) -> pd.DataFrame:
        """
        Build a shuffled frame with a boolean `label` column.

        label is True for rows of `positive_class` ("normal" or "anomaly").
        """
        if variant not in FEATURE_VARIANTS:
            raise ValueError(f"Unknown variant: {variant}. Must be one of {sorted(FEATURE_VARIANTS)}")
        if positive_class not in ("normal", "anomaly"):
            raise ValueError(f"positive_class must be 'normal' or 'anomaly', got {positive_class!r}")

        columns = FEATURE_VARIANTS[variant]
        normal = self._generate(columns, False, n_normal)
        normal["label"] = positive_class == "normal"
        anomaly = self._generate(columns, True, n_anomaly)
        anomaly["label"] = positive_class == "anomaly"

        df = pd.concat([normal, anomaly], ignore_index=True)
        df = df.sample(frac=1.0, random_state=int(self.rng.integers(0, 2**31 - 1))).reset_index(drop=True)
        df.insert(0, "record_id", [f"r{i:05d}" for i in range(len(df))])
        return df


def main():
    parser = argparse.ArgumentParser(description="Generate synthetic traffic rows")
    parser.add_argument("--variant", default="packet_basic", choices=sorted(FEATURE_VARIANTS))
    parser.add_argument("--normal", type=int, default=800)
    parser.add_argument("--anomaly", type=int, default=200)
    parser.add_argument("--positive-class", default="normal", choices=["normal", "anomaly"])
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output", default="data/traffic.csv")
    args = parser.parse_args()

    gen = TrafficGenerator(seed=args.seed)
    df = gen.generate_frame(args.variant, args.normal, args.anomaly, args.positive_class)
    os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
    df.to_csv(args.output, index=False)
    print(f"Wrote {len(df)} rows ({args.normal} normal, {args.anomaly} anomaly) to {args.output}")


if __name__ == "__main__":
    main()
