from ..errors import UnsupportedOperationError
from .base import ParametricCovarianceModel, joint_parameters, same_parameters, split_joint_parameters


class BlendedLocalVolatilityModel(ParametricCovarianceModel):
    """Blend of a log-normal and a normal model on top of a covariance model.

    The factor loading of component ``i`` is

        (a L0_i + (1 - a) L_i(t)) F_i(t)

    where ``a`` is the blending parameter, ``L_i`` the realization of the
    ``i``-th component and ``F_i`` the factor loading of the wrapped model.
    ``a = 0`` gives a log-normal model, ``a = 1`` a model pinned to the
    reference level ``L0``.

    The reference level is 1.0 unless a forward curve is given, in which case
    ``L0_i = forward_curve.forward(max(T_i - t, 0))`` with ``T_i`` the start of
    period ``i``.

    Notes
    -----
    - The parameter vector is that of the wrapped model with ``a`` appended
      at the end (only if ``is_calibratable``).
    - Without a realization the wrapped loading is returned unchanged.
    """

    def __init__(self, covariance_model, displacement, forward_curve=None, is_calibratable=False):
        super().__init__(
            covariance_model.time_discretization,
            covariance_model.libor_period_discretization,
            covariance_model.number_of_factors,
        )
        self.covariance_model = covariance_model
        self.displacement = float(displacement)
        self.forward_curve = forward_curve
        self.is_calibratable = bool(is_calibratable)

    def get_parameters(self):
        return joint_parameters(self.covariance_model, [self.displacement], self.is_calibratable)

    def with_parameters(self, parameters):
        if parameters is None or same_parameters(parameters, self.get_parameters()):
            return self

        inner, own = split_joint_parameters(self.covariance_model, parameters, 1, self.is_calibratable)
        displacement = self.displacement if own is None else float(own[0])
        return BlendedLocalVolatilityModel(
            self.covariance_model.with_parameters(inner),
            displacement,
            self.forward_curve,
            self.is_calibratable,
        )

    def clone(self):
        return BlendedLocalVolatilityModel(
            self.covariance_model.clone(), self.displacement, self.forward_curve, self.is_calibratable
        )

    def clone_with_modified_data(self, data_modified):
        data_modified = data_modified or {}
        if "covariance_model" in data_modified:
            covariance_model = data_modified["covariance_model"]
        else:
            covariance_model = self.covariance_model.clone_with_modified_data(data_modified)

        return BlendedLocalVolatilityModel(
            covariance_model,
            data_modified.get("displacement", self.displacement),
            data_modified.get("forward_curve", self.forward_curve),
            data_modified.get("is_calibratable", self.is_calibratable),
        )

    def get_reference_level(self, time_index, component):
        if self.forward_curve is None:
            return 1.0
        time_to_maturity = (
            self.libor_period_discretization.get_time(component) - self.time_discretization.get_time(time_index)
        )
        return float(self.forward_curve.forward(max(time_to_maturity, 0.0)))

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        factor_loading = self.covariance_model.get_factor_loading(time_index, component, realization_at_time_index)
        if factor_loading is None:
            return None

        if realization_at_time_index is not None and realization_at_time_index[component] is not None:
            a = self.displacement
            level = realization_at_time_index[component]
            reference_level = self.get_reference_level(time_index, component)
            local_volatility_factor = level - level * a + a * reference_level
            factor_loading = [f * local_volatility_factor for f in factor_loading]

        return list(factor_loading)

    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        raise UnsupportedOperationError("Pseudo-inverse is not available for a blended model.")
