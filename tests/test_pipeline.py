import json
import os

import pandas as pd
import pytest
import yaml

from src.traffic_anomaly.pipeline import main, run_prediction, run_training
from src.traffic_anomaly.records import MalformedInputError

SAMPLES = [
    {"record_id": "sample-1", "PacketCount": 150, "AveragePacketSize": 500},
    {"record_id": "sample-2", "PacketCount": 400, "AveragePacketSize": 1500},
]


def _config(make_config, **overrides):
    return make_config(
        data={"id_column": "record_id", **overrides.pop("data", {})},
        prediction={"samples": SAMPLES},
        **overrides,
    )


def test_train_then_predict(make_config, traffic_frame, capsys):
    config = _config(make_config)
    results = run_training(config, traffic_frame)

    assert results["cv_results"]["num_folds"] == 3
    assert results["eval_metrics"]["accuracy"] > 0.9
    assert results["threshold_results"]["recommended_threshold"] is not None
    assert os.path.exists(results["report_path"])
    for name in ["model.pkl", "scaler.pkl", "model_meta.json"]:
        assert os.path.exists(os.path.join(config["paths"]["model_dir"], name))

    out = capsys.readouterr().out
    assert "Cross-validated Model accuracy:" in out
    assert "sample-1: Prediction: normal" in out

    predictions = run_prediction(config)
    by_id = {p.record_id: p for p in predictions}
    assert by_id["sample-1"].verdict == "normal"
    assert by_id["sample-1"].predicted_label is True
    assert by_id["sample-2"].verdict == "anomaly"
    assert by_id["sample-2"].predicted_label is False

    with open(os.path.join(config["paths"]["output_dir"], "predictions.json")) as f:
        saved = json.load(f)
    assert [p["record_id"] for p in saved] == ["sample-1", "sample-2"]


def test_anomaly_polarity(make_config):
    from data.traffic_generator import TrafficGenerator

    frame = TrafficGenerator(seed=3).generate_frame("packet_basic", 160, 80, positive_class="anomaly")
    config = _config(make_config, labels={"positive_class": "anomaly"})
    run_training(config, frame)

    predictions = run_prediction(config)
    assert [p.verdict for p in predictions] == ["normal", "anomaly"]
    assert [p.predicted_label for p in predictions] == [False, True]


def test_evaluate_on_training_data(make_config, traffic_frame):
    config = _config(make_config, data={"test_size": 0.0})
    results = run_training(config, traffic_frame)
    assert results["data_metadata"]["evaluated_on_training_data"] is True
    assert results["eval_metrics"]["total_samples"] == len(traffic_frame)


def test_predict_from_csv(make_config, traffic_frame, tmp_path):
    config = _config(make_config)
    run_training(config, traffic_frame)

    csv_path = tmp_path / "rows.csv"
    traffic_frame.head(10).to_csv(csv_path, index=False)
    predictions = run_prediction(config, input_path=str(csv_path))
    assert [p.record_id for p in predictions] == list(traffic_frame["record_id"].head(10))


def test_predict_rejects_malformed_rows(make_config, traffic_frame):
    config = _config(make_config)
    run_training(config, traffic_frame)
    with pytest.raises(MalformedInputError):
        run_prediction(config, rows=[{"packet_count": 150}])


def test_cli_predict_without_model_fails(make_config, tmp_path, monkeypatch):
    monkeypatch.setattr("src.traffic_anomaly.pipeline.setup_logging", lambda config: None)
    config = _config(make_config)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(config))
    assert main(["predict", "--config", str(config_path)]) == 1


def test_cli_train_and_predict(make_config, traffic_frame, tmp_path, monkeypatch):
    monkeypatch.setattr("src.traffic_anomaly.pipeline.setup_logging", lambda config: None)
    config = _config(make_config)
    csv_path = tmp_path / "traffic.csv"
    traffic_frame.to_csv(csv_path, index=False)
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(config))

    assert main(["train", "--config", str(config_path), "--data", str(csv_path)]) == 0
    assert main(["predict", "--config", str(config_path), "--threshold", "0.5"]) == 0


def test_train_on_lone_minority_row(make_config, traffic_frame):
    normal = traffic_frame[traffic_frame["label"]].head(10)
    anomaly = traffic_frame[~traffic_frame["label"]].head(1)
    frame = pd.concat([normal, anomaly], ignore_index=True)
    config = _config(make_config, model={"params": {"n_estimators": 10}})

    results = run_training(config, frame)
    assert results["cv_results"] is None
    assert results["data_metadata"]["evaluated_on_training_data"] is True
    assert results["eval_metrics"]["total_samples"] == 11


def _write_config(tmp_path, config):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(config))
    return str(config_path)


def test_cli_single_class_training_aborts(make_config, traffic_frame, tmp_path, monkeypatch):
    monkeypatch.setattr("src.traffic_anomaly.pipeline.setup_logging", lambda config: None)
    csv_path = tmp_path / "normal_only.csv"
    traffic_frame[traffic_frame["label"]].to_csv(csv_path, index=False)
    config_path = _write_config(tmp_path, _config(make_config))
    assert main(["train", "--config", config_path, "--data", str(csv_path)]) == 3


def test_cli_missing_label_exits_with_malformed_code(make_config, traffic_frame, tmp_path, monkeypatch):
    monkeypatch.setattr("src.traffic_anomaly.pipeline.setup_logging", lambda config: None)
    frame = traffic_frame.copy()
    frame["label"] = frame["label"].astype(object)
    frame.loc[3, "label"] = None
    csv_path = tmp_path / "traffic.csv"
    frame.to_csv(csv_path, index=False)
    config_path = _write_config(tmp_path, _config(make_config))
    assert main(["train", "--config", config_path, "--data", str(csv_path)]) == 2
