import threading

import numpy as np

from ..errors import CalculationError, UnsupportedOperationError
from ..process import EulerScheme, ProcessModel
from .base import ParametricCovarianceModel, joint_parameters, same_parameters, split_joint_parameters


class LogVolatilityProcessModel(ProcessModel):
    """Log-normal volatility scaling ``exp(X)`` with ``X(0) = 0`` and

        dX = -0.5 nu^2 dt + rho nu dW1 + sqrt(1 - rho^2) nu dW2
    """

    def __init__(self, time_discretization, nu, rho):
        self._time_discretization = time_discretization
        self.nu = float(nu)
        self.rho = float(rho)

    @property
    def time_discretization(self):
        return self._time_discretization

    @property
    def number_of_components(self):
        return 1

    @property
    def number_of_factors(self):
        return 2

    def get_initial_state(self):
        return [0.0]

    def get_drift(self, time_index, realization_at_time_index):
        return [-0.5 * self.nu * self.nu]

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        return [self.rho * self.nu, np.sqrt(max(1.0 - self.rho * self.rho, 0.0)) * self.nu]

    def apply_state_space_transform(self, component, value):
        return np.exp(value)

    def apply_state_space_transform_inverse(self, component, value):
        return np.log(value)


class StochasticVolatilityModel(ParametricCovarianceModel):
    """Log-normal stochastic volatility scaling of a covariance model.

    The wrapped factor loading is multiplied by the value of
    :class:`LogVolatilityProcessModel` (driven by the first two factors of
    ``brownian_motion``). Parameter vector: wrapped parameters, then
    ``[nu, rho]`` if calibratable. The scaling process is cached like the
    variance process of the Heston model.
    """

    def __init__(self, covariance_model, brownian_motion, nu, rho, is_calibratable=False):
        super().__init__(
            covariance_model.time_discretization,
            covariance_model.libor_period_discretization,
            covariance_model.number_of_factors,
        )
        self.covariance_model = covariance_model
        self.brownian_motion = brownian_motion
        self.nu = float(nu)
        self.rho = float(rho)
        self.is_calibratable = bool(is_calibratable)

        self._scaling_process = None
        self._scaling_process_lock = threading.Lock()

    def get_parameters(self):
        return joint_parameters(self.covariance_model, [self.nu, self.rho], self.is_calibratable)

    def with_parameters(self, parameters):
        if parameters is None or same_parameters(parameters, self.get_parameters()):
            return self

        inner, own = split_joint_parameters(self.covariance_model, parameters, 2, self.is_calibratable)
        nu, rho = (self.nu, self.rho) if own is None else own
        return StochasticVolatilityModel(
            self.covariance_model.with_parameters(inner), self.brownian_motion, nu, rho, self.is_calibratable
        )

    def clone(self):
        return StochasticVolatilityModel(
            self.covariance_model.clone(), self.brownian_motion, self.nu, self.rho, self.is_calibratable
        )

    def clone_with_modified_data(self, data_modified):
        data_modified = data_modified or {}
        if "covariance_model" in data_modified:
            covariance_model = data_modified["covariance_model"]
        else:
            covariance_model = self.covariance_model.clone_with_modified_data(data_modified)

        return StochasticVolatilityModel(
            covariance_model,
            data_modified.get("brownian_motion", self.brownian_motion),
            data_modified.get("nu", self.nu),
            data_modified.get("rho", self.rho),
            data_modified.get("is_calibratable", self.is_calibratable),
        )

    def get_scaling_process(self):
        with self._scaling_process_lock:
            if self._scaling_process is None:
                model = LogVolatilityProcessModel(self.brownian_motion.time_discretization, self.nu, self.rho)
                self._scaling_process = EulerScheme(model, self.brownian_motion)
            return self._scaling_process

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        try:
            scaling = self.get_scaling_process().get_process_value(time_index, 0)
        except CalculationError:
            return None

        factor_loading = self.covariance_model.get_factor_loading(time_index, component, realization_at_time_index)
        if factor_loading is None:
            return None
        return [f * scaling for f in factor_loading]

    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        raise UnsupportedOperationError("Pseudo-inverse is not available for a stochastic volatility model.")
