from ..errors import UnsupportedOperationError
from .base import ParametricCovarianceModel, joint_parameters, same_parameters, split_joint_parameters


class DisplacedLocalVolatilityModel(ParametricCovarianceModel):
    """Displaced model built on top of a given covariance model.

    The factor loading of component ``i`` is ``(L_i(t) + d) F_i(t)`` where
    ``d`` is the displacement, ``L_i`` the realization of the ``i``-th
    component and ``F_i`` the factor loading of the wrapped model.

    The parameter vector is that of the wrapped model with ``d`` appended at
    the end. If the displacement is not calibratable the parameter vector is
    exactly that of the wrapped model.

    Parameters
    ----------
    covariance_model : ParametricCovarianceModel
        Model providing the factor loadings ``F``.
    displacement : float
        The displacement ``d``.
    is_calibratable : bool
        Whether ``d`` is a free parameter. The wrapped model keeps its own
        calibration settings either way.
    """

    def __init__(self, covariance_model, displacement, is_calibratable=False):
        super().__init__(
            covariance_model.time_discretization,
            covariance_model.libor_period_discretization,
            covariance_model.number_of_factors,
        )
        self.covariance_model = covariance_model
        self.displacement = float(displacement)
        self.is_calibratable = bool(is_calibratable)

    def get_parameters(self):
        return joint_parameters(self.covariance_model, [self.displacement], self.is_calibratable)

    def with_parameters(self, parameters):
        if parameters is None or same_parameters(parameters, self.get_parameters()):
            return self

        inner, own = split_joint_parameters(self.covariance_model, parameters, 1, self.is_calibratable)
        displacement = self.displacement if own is None else float(own[0])
        return DisplacedLocalVolatilityModel(
            self.covariance_model.with_parameters(inner), displacement, self.is_calibratable
        )

    def clone(self):
        return DisplacedLocalVolatilityModel(self.covariance_model.clone(), self.displacement, self.is_calibratable)

    def clone_with_modified_data(self, data_modified):
        data_modified = data_modified or {}
        if "covariance_model" in data_modified:
            covariance_model = data_modified["covariance_model"]
        else:
            covariance_model = self.covariance_model.clone_with_modified_data(data_modified)

        return DisplacedLocalVolatilityModel(
            covariance_model,
            data_modified.get("displacement", self.displacement),
            data_modified.get("is_calibratable", self.is_calibratable),
        )

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        factor_loading = self.covariance_model.get_factor_loading(time_index, component, realization_at_time_index)
        if factor_loading is None:
            return None

        if realization_at_time_index is not None and realization_at_time_index[component] is not None:
            local_volatility_factor = realization_at_time_index[component] + self.displacement
            factor_loading = [f * local_volatility_factor for f in factor_loading]

        return list(factor_loading)

    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        raise UnsupportedOperationError("Pseudo-inverse is not available for a displaced model.")
