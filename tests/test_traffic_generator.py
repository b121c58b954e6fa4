import pytest

from data.traffic_generator import TrafficGenerator
from src.traffic_anomaly.records import FEATURE_VARIANTS


@pytest.mark.parametrize("variant", sorted(FEATURE_VARIANTS))
def test_generated_columns(variant):
    df = TrafficGenerator(seed=1).generate_frame(variant, n_normal=30, n_anomaly=10)
    assert list(df.columns) == ["record_id"] + FEATURE_VARIANTS[variant] + ["label"]
    assert len(df) == 40


def test_label_polarity():
    normal_true = TrafficGenerator(seed=1).generate_frame(n_normal=30, n_anomaly=10, positive_class="normal")
    anomaly_true = TrafficGenerator(seed=1).generate_frame(n_normal=30, n_anomaly=10, positive_class="anomaly")
    assert normal_true["label"].sum() == 30
    assert anomaly_true["label"].sum() == 10


def test_total_data_sent_is_product():
    df = TrafficGenerator(seed=2).generate_frame("packet_extended", 5, 5)
    assert (df["total_data_sent"] == df["packet_count"] * df["average_packet_size"]).all()


def test_seed_is_reproducible():
    a = TrafficGenerator(seed=9).generate_frame(n_normal=20, n_anomaly=5)
    b = TrafficGenerator(seed=9).generate_frame(n_normal=20, n_anomaly=5)
    assert a.equals(b)


def test_unknown_variant():
    with pytest.raises(ValueError):
        TrafficGenerator().generate_frame("bogus")
