import os
import sys
import time

import pytest

# Allow running tests without installing the package.
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if BASE_DIR not in sys.path:
    sys.path.insert(0, BASE_DIR)

from covariance_calibration.covariance.base import ParametricCovarianceModel, parameter_vector
from covariance_calibration.discretization import TimeDiscretization
from covariance_calibration.errors import CalculationError


class ConstantCovarianceModel(ParametricCovarianceModel):
    """Factor loading ``[level] * number_of_factors`` for every input."""

    def __init__(self, time_discretization, libor_period_discretization, number_of_factors=1, level=1.0,
                 is_calibratable=False):
        super().__init__(time_discretization, libor_period_discretization, number_of_factors)
        self.level = float(level)
        self.is_calibratable = is_calibratable

    def get_parameters(self):
        return parameter_vector([self.level] if self.is_calibratable else [])

    def with_parameters(self, parameters):
        parameters = parameter_vector(parameters)
        if not self.is_calibratable or parameters[0] == self.level:
            return self
        return ConstantCovarianceModel(
            self.time_discretization,
            self.libor_period_discretization,
            self.number_of_factors,
            parameters[0],
            self.is_calibratable,
        )

    def clone(self):
        return ConstantCovarianceModel(
            self.time_discretization,
            self.libor_period_discretization,
            self.number_of_factors,
            self.level,
            self.is_calibratable,
        )

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        return [self.level] * self.number_of_factors

    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        return 1.0 / (self.level * self.number_of_factors)


class StubCalibrationModel:
    """Calibration context that only carries the covariance model."""

    def __init__(self, covariance_model=None):
        self.covariance_model = covariance_model

    def get_clone_with_modified_covariance_model(self, covariance_model):
        return StubCalibrationModel(covariance_model)


class LoadingProduct:
    """Value is the first factor loading of component 0 for the state ``[state]``."""

    def __init__(self, state):
        self.state = state

    def value(self, evaluation_time, simulation):
        return simulation.model.covariance_model.get_factor_loading(0, 0, [self.state])[0]


class ConstantProduct:
    def __init__(self, value, delay=0.0):
        self._value = value
        self.delay = delay

    def value(self, evaluation_time, simulation):
        if self.delay:
            time.sleep(self.delay)
        return self._value


class FailingProduct:
    def value(self, evaluation_time, simulation):
        raise CalculationError("Product cannot be valued.")


@pytest.fixture
def time_discretization():
    return TimeDiscretization.from_step(0.0, 10, 0.5)


@pytest.fixture
def libor_period_discretization():
    return TimeDiscretization.from_step(0.5, 10, 0.5)


@pytest.fixture
def constant_model(time_discretization, libor_period_discretization):
    return ConstantCovarianceModel(time_discretization, libor_period_discretization, number_of_factors=2, level=0.2)
