"""Covariance models built from a volatility model and a correlation model.

The factor loading of component ``i`` for factor ``f`` is

    sigma_i(t) * F[i, f]

where ``sigma`` comes from the volatility model and ``F`` is the (factor
reduced) square root of the correlation matrix.
"""

import numpy as np

from .base import ParametricCovarianceModel, parameter_vector, same_parameters


def _period_start_times(libor_period_discretization):
    return np.asarray(libor_period_discretization.times[:-1], dtype=float)


class FourParameterExponentialVolatilityModel:
    """Volatility ``(a + b tau) exp(-c tau) + d`` with ``tau = T_i - t``.

    Periods that have already started (``tau <= 0``) have zero volatility.
    The volatility matrix (time index x component) is computed once at
    construction.
    """

    def __init__(self, time_discretization, libor_period_discretization, a, b, c, d, is_calibratable=True):
        self.time_discretization = time_discretization
        self.libor_period_discretization = libor_period_discretization
        self.a = float(a)
        self.b = float(b)
        self.c = float(c)
        self.d = float(d)
        self.is_calibratable = bool(is_calibratable)

        tau = _period_start_times(libor_period_discretization)[None, :] - time_discretization.times[:, None]
        volatility = np.where(
            tau > 0.0,
            (self.a + self.b * tau) * np.exp(-self.c * np.maximum(tau, 0.0)) + self.d,
            0.0,
        )
        volatility.flags.writeable = False
        self._volatility = volatility

    def get_parameters(self):
        if not self.is_calibratable:
            return parameter_vector([])
        return parameter_vector([self.a, self.b, self.c, self.d])

    def with_parameters(self, parameters):
        if not self.is_calibratable or same_parameters(parameters, self.get_parameters()):
            return self
        a, b, c, d = parameter_vector(parameters)
        return FourParameterExponentialVolatilityModel(
            self.time_discretization, self.libor_period_discretization, a, b, c, d, self.is_calibratable
        )

    def clone(self):
        return FourParameterExponentialVolatilityModel(
            self.time_discretization,
            self.libor_period_discretization,
            self.a,
            self.b,
            self.c,
            self.d,
            self.is_calibratable,
        )

    def get_volatility(self, time_index, component):
        return float(self._volatility[time_index, component])


class ExponentialDecayCorrelationModel:
    """Correlation ``rho_ij = exp(-decay |T_i - T_j|)`` with factor reduction.

    The factor matrix keeps the eigenvectors of the ``number_of_factors``
    largest eigenvalues and renormalises each row to unit length, so every
    component keeps unit variance.
    """

    def __init__(self, time_discretization, libor_period_discretization, number_of_factors, decay,
                 is_calibratable=True):
        self.time_discretization = time_discretization
        self.libor_period_discretization = libor_period_discretization
        self.number_of_factors = int(number_of_factors)
        self.decay = float(decay)
        self.is_calibratable = bool(is_calibratable)

        starts = _period_start_times(libor_period_discretization)
        if not 0 < self.number_of_factors <= starts.size:
            raise ValueError(
                "number_of_factors must be between 1 and %d, got %d." % (starts.size, self.number_of_factors)
            )

        correlation = np.exp(-self.decay * np.abs(starts[:, None] - starts[None, :]))
        self._factor_matrix = self._factor_reduction(correlation, self.number_of_factors)

    @staticmethod
    def _factor_reduction(correlation, number_of_factors):
        eigenvalues, eigenvectors = np.linalg.eigh(correlation)
        order = np.argsort(eigenvalues)[::-1][:number_of_factors]
        factors = eigenvectors[:, order] * np.sqrt(np.maximum(eigenvalues[order], 0.0))

        norms = np.linalg.norm(factors, axis=1)
        norms[norms == 0.0] = 1.0
        factors = factors / norms[:, None]
        factors.flags.writeable = False
        return factors

    def get_parameters(self):
        if not self.is_calibratable:
            return parameter_vector([])
        return parameter_vector([self.decay])

    def with_parameters(self, parameters):
        if not self.is_calibratable or same_parameters(parameters, self.get_parameters()):
            return self
        (decay,) = parameter_vector(parameters)
        return ExponentialDecayCorrelationModel(
            self.time_discretization,
            self.libor_period_discretization,
            self.number_of_factors,
            decay,
            self.is_calibratable,
        )

    def clone(self):
        return ExponentialDecayCorrelationModel(
            self.time_discretization,
            self.libor_period_discretization,
            self.number_of_factors,
            self.decay,
            self.is_calibratable,
        )

    def get_factor_loading(self, time_index, factor, component):
        return float(self._factor_matrix[component, factor])

    def get_correlation(self, time_index, component1, component2):
        return float(np.dot(self._factor_matrix[component1], self._factor_matrix[component2]))


class CovarianceModelFromVolatilityAndCorrelation(ParametricCovarianceModel):
    """Covariance model combining a volatility model and a correlation model.

    The joint parameter vector is the volatility parameters followed by the
    correlation parameters. :meth:`with_parameters` only rebuilds a sub-model
    whose block actually changed.
    """

    def __init__(self, time_discretization, libor_period_discretization, volatility_model, correlation_model):
        super().__init__(time_discretization, libor_period_discretization, correlation_model.number_of_factors)
        self.volatility_model = volatility_model
        self.correlation_model = correlation_model

    def get_parameters(self):
        return parameter_vector(
            np.concatenate([self.volatility_model.get_parameters(), self.correlation_model.get_parameters()])
        )

    def _with_sub_models(self, volatility_model, correlation_model):
        return CovarianceModelFromVolatilityAndCorrelation(
            self.time_discretization, self.libor_period_discretization, volatility_model, correlation_model
        )

    def with_parameters(self, parameters):
        if parameters is None:
            return self
        parameters = parameter_vector(parameters)

        volatility_parameters = self.volatility_model.get_parameters()
        correlation_parameters = self.correlation_model.get_parameters()
        expected = volatility_parameters.size + correlation_parameters.size
        if parameters.size != expected:
            raise ValueError("Expected %d parameters, got %d." % (expected, parameters.size))

        new_volatility = parameters[:volatility_parameters.size]
        new_correlation = parameters[volatility_parameters.size:]

        volatility_model = self.volatility_model
        if not same_parameters(new_volatility, volatility_parameters):
            volatility_model = volatility_model.with_parameters(new_volatility)

        correlation_model = self.correlation_model
        if not same_parameters(new_correlation, correlation_parameters):
            correlation_model = correlation_model.with_parameters(new_correlation)

        if volatility_model is self.volatility_model and correlation_model is self.correlation_model:
            return self
        return self._with_sub_models(volatility_model, correlation_model)

    def clone(self):
        return self._with_sub_models(self.volatility_model.clone(), self.correlation_model.clone())

    def clone_with_modified_data(self, data_modified):
        data_modified = data_modified or {}
        return CovarianceModelFromVolatilityAndCorrelation(
            data_modified.get("time_discretization", self.time_discretization),
            data_modified.get("libor_period_discretization", self.libor_period_discretization),
            data_modified.get("volatility_model", self.volatility_model),
            data_modified.get("correlation_model", self.correlation_model),
        )

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        volatility = self.volatility_model.get_volatility(time_index, component)
        return [
            volatility * self.correlation_model.get_factor_loading(time_index, factor, component)
            for factor in range(self.number_of_factors)
        ]

    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        # Assumes orthogonal factor columns.
        volatility = self.volatility_model.get_volatility(time_index, component)
        if volatility == 0.0:
            return 0.0

        number_of_components = self.libor_period_discretization.number_of_time_steps
        factor_weight = 0.0
        for i in range(number_of_components):
            element = self.correlation_model.get_factor_loading(time_index, factor, i)
            factor_weight += element * element

        return self.correlation_model.get_factor_loading(time_index, factor, component) / volatility / factor_weight


class ExponentialFormCovarianceModel(CovarianceModelFromVolatilityAndCorrelation):
    """Five-parameter covariance model ``[a, b, c, d, correlation_decay]``.

    Four-parameter exponential volatility combined with an exponentially
    decaying correlation.
    """

    def __init__(self, time_discretization, libor_period_discretization, number_of_factors, parameters,
                 volatility_model=None, correlation_model=None):
        parameters = parameter_vector(parameters)
        if parameters.size != 5:
            raise ValueError("Expected 5 parameters, got %d." % parameters.size)

        if volatility_model is None:
            volatility_model = FourParameterExponentialVolatilityModel(
                time_discretization, libor_period_discretization, *parameters[:4]
            )
        if correlation_model is None:
            correlation_model = ExponentialDecayCorrelationModel(
                time_discretization, libor_period_discretization, number_of_factors, parameters[4]
            )
        super().__init__(time_discretization, libor_period_discretization, volatility_model, correlation_model)

    def _with_sub_models(self, volatility_model, correlation_model):
        return ExponentialFormCovarianceModel(
            self.time_discretization,
            self.libor_period_discretization,
            self.number_of_factors,
            np.concatenate([volatility_model.get_parameters(), correlation_model.get_parameters()]),
            volatility_model=volatility_model,
            correlation_model=correlation_model,
        )

    def clone_with_modified_data(self, data_modified):
        data_modified = data_modified or {}
        time_discretization = data_modified.get("time_discretization", self.time_discretization)
        libor_period_discretization = data_modified.get(
            "libor_period_discretization", self.libor_period_discretization
        )
        number_of_factors = data_modified.get("number_of_factors", self.number_of_factors)
        return ExponentialFormCovarianceModel(
            time_discretization,
            libor_period_discretization,
            number_of_factors,
            data_modified.get("parameters", self.get_parameters()),
        )
