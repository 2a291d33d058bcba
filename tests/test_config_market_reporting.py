import logging
import math

import pandas as pd
import pytest
import QuantLib as ql

from conftest import ConstantCovarianceModel, ConstantProduct, FailingProduct, LoadingProduct, StubCalibrationModel
from covariance_calibration.calibration import CalibrationObjective, CalibrationProduct
from covariance_calibration.concurrency import InlineTaskRunner
from covariance_calibration.config import CalibrationConfig
from covariance_calibration.covariance.displaced import DisplacedLocalVolatilityModel
from covariance_calibration.market import QuantLibForwardCurve
from covariance_calibration.reporting import SUMMARY_COLUMNS, calibration_summary, rms_error


def test_config_defaults():
    cfg = CalibrationConfig()
    assert cfg.number_of_paths == 2000
    assert cfg.seed == 31415
    assert cfg.max_iterations == 400
    assert cfg.accuracy == 1e-7
    assert cfg.parameter_step == 1e-4
    assert cfg.brownian_motion is None
    assert cfg.optimizer_factory is None
    assert cfg.optimizer_threads == 2
    assert cfg.number_of_threads >= 1


def test_config_from_mapping_ignores_unknown_keys(caplog):
    with caplog.at_level(logging.WARNING, logger="covariance_calibration.config"):
        cfg = CalibrationConfig.from_mapping({"seed": 3, "numberOfPath": 10})
    assert cfg.seed == 3
    assert cfg.number_of_paths == 2000
    assert "numberOfPath" in caplog.text


def test_config_from_mapping_accepts_camel_case_keys(caplog):
    with caplog.at_level(logging.WARNING, logger="covariance_calibration.config"):
        cfg = CalibrationConfig.from_mapping(
            {"numberOfPaths": 10, "maxIterations": 50, "parameterStep": 1e-3, "seed": 4, "accuracy": 1e-6}
        )
    assert cfg.number_of_paths == 10
    assert cfg.max_iterations == 50
    assert cfg.parameter_step == 1e-3
    assert cfg.seed == 4
    assert cfg.accuracy == 1e-6
    assert caplog.text == ""


def test_config_from_mapping_rejects_duplicate_spellings():
    with pytest.raises(ValueError):
        CalibrationConfig.from_mapping({"number_of_paths": 10, "numberOfPaths": 20})


@pytest.mark.parametrize(
    "key, value",
    [("number_of_paths", 0), ("max_iterations", 0), ("accuracy", 0.0), ("parameter_step", -1e-4)],
)
def test_config_rejects_invalid_values(key, value):
    with pytest.raises(ValueError):
        CalibrationConfig.from_mapping({key: value})


def test_config_to_dict_keeps_scalars():
    d = CalibrationConfig(number_of_threads=0).to_dict()
    assert d["number_of_threads"] == 0
    assert d["seed"] == 31415
    assert "brownian_motion" not in d


def test_flat_forward_curve():
    curve = QuantLibForwardCurve.flat(0.03, period_length=0.5)
    assert curve.forward(1.0) == pytest.approx((math.exp(0.015) - 1.0) / 0.5, abs=1e-10)
    assert curve.forward(-1.0) == pytest.approx(curve.forward(0.0))
    assert curve.discount_factor(2.0) == pytest.approx(math.exp(-0.06), abs=1e-12)


def test_curve_from_discount_factors():
    dates = [ql.Date(1, 1, 2025), ql.Date(1, 1, 2026), ql.Date(1, 1, 2027)]
    curve = QuantLibForwardCurve.from_discount_factors(dates, [1.0, 0.97, 0.94], period_length=1.0)
    assert curve.discount_factor(1.0) == pytest.approx(0.97, abs=1e-12)
    assert curve.forward(0.0) == pytest.approx(1.0 / 0.97 - 1.0, abs=1e-10)
    assert curve.forward(1.0) == pytest.approx(0.97 / 0.94 - 1.0, abs=1e-10)


def test_curve_rejects_bad_input():
    with pytest.raises(ValueError):
        QuantLibForwardCurve.from_discount_factors([ql.Date(1, 1, 2025)], [1.0])
    with pytest.raises(ValueError):
        QuantLibForwardCurve.flat(0.03, period_length=0.0)


def test_calibration_summary(time_discretization, libor_period_discretization):
    base = ConstantCovarianceModel(time_discretization, libor_period_discretization, level=1.0)
    model = DisplacedLocalVolatilityModel(base, 0.0, is_calibratable=True)
    products = [
        CalibrationProduct(LoadingProduct(0.02), 0.05, weight=2.0, name="caplet"),
        CalibrationProduct(FailingProduct(), 0.4, name="broken"),
        CalibrationProduct(ConstantProduct(0.3), 0.1),
    ]
    objective = CalibrationObjective(model, StubCalibrationModel(), products, None, InlineTaskRunner())

    summary = calibration_summary(objective, [0.01])
    assert list(summary.columns) == SUMMARY_COLUMNS
    assert list(summary["product"]) == ["caplet", "broken", "product_2"]
    assert list(summary["failed"]) == [False, True, False]
    assert summary["value"].tolist() == pytest.approx([0.03, 0.4, 0.3])
    assert summary["residual"].tolist() == pytest.approx([-0.04, 0.0, 0.2])
    assert rms_error(summary) == pytest.approx(math.sqrt((0.04 ** 2 + 0.2 ** 2) / 3))


def test_rms_error_of_empty_summary():
    assert rms_error(pd.DataFrame(columns=SUMMARY_COLUMNS)) == 0.0
