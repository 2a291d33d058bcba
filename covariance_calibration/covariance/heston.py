import logging
import threading

import numpy as np

from ..errors import CalculationError, UnsupportedOperationError
from ..process import EulerScheme, ProcessModel
from .base import ParametricCovarianceModel, joint_parameters, same_parameters, split_joint_parameters

logger = logging.getLogger(__name__)


class VarianceProcessModel(ProcessModel):
    """One-factor square-root variance process started at 1.

        dV = kappa (theta - V) dt + xi sqrt(max(V, 0)) dW
    """

    def __init__(self, time_discretization, kappa, theta, xi):
        self._time_discretization = time_discretization
        self.kappa = float(kappa)
        self.theta = float(theta)
        self.xi = float(xi)

    @property
    def time_discretization(self):
        return self._time_discretization

    @property
    def number_of_components(self):
        return 1

    @property
    def number_of_factors(self):
        return 1

    def get_initial_state(self):
        return [1.0]

    def get_drift(self, time_index, realization_at_time_index):
        return [-self.kappa * (realization_at_time_index[0] - self.theta)]

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        return [self.xi * np.sqrt(np.maximum(realization_at_time_index[0], 0.0))]


class StochasticHestonVolatilityModel(ParametricCovarianceModel):
    """Heston-type stochastic volatility scaling of a covariance model.

    The factor loading of the wrapped model is multiplied by
    ``sqrt(max(V(t), 0))`` where ``V`` is the variance process of
    :class:`VarianceProcessModel`, driven by the first factor of
    ``brownian_motion``.

    The variance process is built lazily on first use and cached per
    instance; building it is guarded by an instance lock. If the process
    cannot provide a value at the requested time index the factor loading is
    ``None``.

    Parameters
    ----------
    covariance_model : ParametricCovarianceModel
        The wrapped model.
    brownian_motion : BrownianMotion
        Driver of the variance process (at least two factors expected, only
        the first is used here).
    kappa, theta, xi : float
        Mean reversion speed, mean reversion level and volatility of ``V``.
    is_calibratable : bool
        If true ``[kappa, theta, xi]`` is appended to the wrapped parameters.
    """

    def __init__(self, covariance_model, brownian_motion, kappa, theta, xi, is_calibratable=False):
        super().__init__(
            covariance_model.time_discretization,
            covariance_model.libor_period_discretization,
            covariance_model.number_of_factors,
        )
        self.covariance_model = covariance_model
        self.brownian_motion = brownian_motion
        self.kappa = float(kappa)
        self.theta = float(theta)
        self.xi = float(xi)
        self.is_calibratable = bool(is_calibratable)

        self._variance_process = None
        self._variance_process_lock = threading.Lock()

    def get_parameters(self):
        return joint_parameters(self.covariance_model, [self.kappa, self.theta, self.xi], self.is_calibratable)

    def with_parameters(self, parameters):
        if parameters is None or same_parameters(parameters, self.get_parameters()):
            return self

        inner, own = split_joint_parameters(self.covariance_model, parameters, 3, self.is_calibratable)
        kappa, theta, xi = (self.kappa, self.theta, self.xi) if own is None else own
        return StochasticHestonVolatilityModel(
            self.covariance_model.with_parameters(inner),
            self.brownian_motion,
            kappa,
            theta,
            xi,
            self.is_calibratable,
        )

    def clone(self):
        return StochasticHestonVolatilityModel(
            self.covariance_model.clone(),
            self.brownian_motion,
            self.kappa,
            self.theta,
            self.xi,
            self.is_calibratable,
        )

    def clone_with_modified_data(self, data_modified):
        data_modified = data_modified or {}
        if "covariance_model" in data_modified:
            covariance_model = data_modified["covariance_model"]
        else:
            covariance_model = self.covariance_model.clone_with_modified_data(data_modified)

        return StochasticHestonVolatilityModel(
            covariance_model,
            data_modified.get("brownian_motion", self.brownian_motion),
            data_modified.get("kappa", self.kappa),
            data_modified.get("theta", self.theta),
            data_modified.get("xi", self.xi),
            data_modified.get("is_calibratable", self.is_calibratable),
        )

    def get_variance_process(self):
        """The cached variance process (built on first call)."""
        with self._variance_process_lock:
            if self._variance_process is None:
                model = VarianceProcessModel(self.brownian_motion.time_discretization, self.kappa, self.theta, self.xi)
                self._variance_process = EulerScheme(model, self.brownian_motion)
            return self._variance_process

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        try:
            variance = self.get_variance_process().get_process_value(time_index, 0)
        except CalculationError as e:
            logger.debug("Variance process unavailable at time index %d: %s", time_index, e)
            return None

        factor_loading = self.covariance_model.get_factor_loading(time_index, component, realization_at_time_index)
        if factor_loading is None:
            return None

        scaling = np.sqrt(np.maximum(variance, 0.0))
        return [f * scaling for f in factor_loading]

    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        raise UnsupportedOperationError("Pseudo-inverse is not available for a stochastic volatility model.")
