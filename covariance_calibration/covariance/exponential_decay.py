import numpy as np

from ..errors import UnsupportedOperationError
from .base import ParametricCovarianceModel, joint_parameters, same_parameters, split_joint_parameters


class ExponentialDecayLocalVolatilityModel(ParametricCovarianceModel):
    """Scales the loadings of a covariance model by ``exp(-decay (T_i - t))``.

    Parameter vector: wrapped parameters, then ``decay`` if calibratable.
    """

    def __init__(self, covariance_model, decay, is_calibratable=False):
        super().__init__(
            covariance_model.time_discretization,
            covariance_model.libor_period_discretization,
            covariance_model.number_of_factors,
        )
        self.covariance_model = covariance_model
        self.decay = float(decay)
        self.is_calibratable = bool(is_calibratable)

    def get_parameters(self):
        return joint_parameters(self.covariance_model, [self.decay], self.is_calibratable)

    def with_parameters(self, parameters):
        if parameters is None or same_parameters(parameters, self.get_parameters()):
            return self

        inner, own = split_joint_parameters(self.covariance_model, parameters, 1, self.is_calibratable)
        decay = self.decay if own is None else float(own[0])
        return ExponentialDecayLocalVolatilityModel(
            self.covariance_model.with_parameters(inner), decay, self.is_calibratable
        )

    def clone(self):
        return ExponentialDecayLocalVolatilityModel(self.covariance_model.clone(), self.decay, self.is_calibratable)

    def clone_with_modified_data(self, data_modified):
        data_modified = data_modified or {}
        if "covariance_model" in data_modified:
            covariance_model = data_modified["covariance_model"]
        else:
            covariance_model = self.covariance_model.clone_with_modified_data(data_modified)

        return ExponentialDecayLocalVolatilityModel(
            covariance_model,
            data_modified.get("decay", self.decay),
            data_modified.get("is_calibratable", self.is_calibratable),
        )

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        factor_loading = self.covariance_model.get_factor_loading(time_index, component, realization_at_time_index)
        if factor_loading is None:
            return None

        time_to_maturity = (
            self.libor_period_discretization.get_time(component) - self.time_discretization.get_time(time_index)
        )
        scaling = np.exp(-self.decay * time_to_maturity)
        return [f * scaling for f in factor_loading]

    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        raise UnsupportedOperationError("Pseudo-inverse is not available for an exponential decay model.")
