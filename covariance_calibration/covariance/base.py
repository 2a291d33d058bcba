import abc

import numpy as np


def parameter_vector(values):
    """Return ``values`` as a read-only 1-D float array (a ParameterVector)."""
    if values is None:
        values = ()
    vector = np.array(values, dtype=float).reshape(-1)
    vector.flags.writeable = False
    return vector


def join_parameters(inner, own):
    """Append ``own`` to ``inner``."""
    return parameter_vector(np.concatenate([parameter_vector(inner), parameter_vector(own)]))


def split_parameters(parameters, own_length):
    """Split off the last ``own_length`` entries: ``(inner, own)``."""
    parameters = parameter_vector(parameters)
    if own_length > parameters.size:
        raise ValueError(
            "Parameter vector of length %d cannot hold an own block of length %d."
            % (parameters.size, own_length)
        )
    cut = parameters.size - own_length
    return parameter_vector(parameters[:cut]), parameter_vector(parameters[cut:])


def joint_parameters(inner_model, own, is_calibratable):
    """Parameter vector of a decorator wrapping ``inner_model``.

    A decorator whose own block is fixed exposes exactly the inner parameters;
    otherwise its own block is appended at the end.
    """
    inner = inner_model.get_parameters()
    if not is_calibratable:
        return parameter_vector(inner)
    return join_parameters(inner, own)


def split_joint_parameters(inner_model, parameters, own_length, is_calibratable):
    """Inverse of :func:`joint_parameters`: ``(inner, own)``, ``own`` is ``None`` if fixed."""
    parameters = parameter_vector(parameters)
    expected = inner_model.get_parameters().size + (own_length if is_calibratable else 0)
    if parameters.size != expected:
        raise ValueError("Expected %d parameters, got %d." % (expected, parameters.size))
    if not is_calibratable:
        return parameters, None
    return split_parameters(parameters, own_length)


def same_parameters(a, b):
    return np.array_equal(parameter_vector(a), parameter_vector(b))


class CovarianceModel(abc.ABC):
    """Factor loadings of a term-structure model.

    The factor loading ``f_i`` of component ``i`` is such that the scalar
    product ``f_j . f_k`` is the instantaneous covariance of components
    ``j`` and ``k``. Entries are stochastic values: floats or arrays with one
    entry per path.

    Parameters
    ----------
    time_discretization : TimeDiscretization
        Simulation time grid.
    libor_period_discretization : TimeDiscretization
        Tenor grid; component ``i`` is the period starting at its ``i``-th time.
    number_of_factors : int
        Length of every factor loading vector.
    """

    def __init__(self, time_discretization, libor_period_discretization, number_of_factors):
        self.time_discretization = time_discretization
        self.libor_period_discretization = libor_period_discretization
        self.number_of_factors = int(number_of_factors)

    @abc.abstractmethod
    def get_factor_loading(self, time_index, component, realization_at_time_index):
        """Factor loading vector, or ``None`` if it is unavailable.

        ``realization_at_time_index`` may be ``None`` (no path state known);
        state dependent scalings are then skipped.
        """
        raise NotImplementedError

    @abc.abstractmethod
    def get_factor_loading_pseudo_inverse(self, time_index, component, factor, realization_at_time_index):
        raise NotImplementedError

    def get_factor_loading_for_time(self, time, component, realization_at_time_index):
        """Factor loading at simulation time ``time`` (piecewise constant in time)."""
        time_index = self.time_discretization.get_time_index_nearest_less_or_equal(time)
        return self.get_factor_loading(max(time_index, 0), component, realization_at_time_index)

    def get_covariance(self, time_index, component1, component2, realization_at_time_index):
        factor_loading1 = self.get_factor_loading(time_index, component1, realization_at_time_index)
        factor_loading2 = self.get_factor_loading(time_index, component2, realization_at_time_index)
        if factor_loading1 is None or factor_loading2 is None:
            return None

        covariance = 0.0
        for f1, f2 in zip(factor_loading1, factor_loading2):
            covariance = covariance + f1 * f2
        return covariance


class ParametricCovarianceModel(CovarianceModel):
    """Covariance model with a (possibly empty) vector of free parameters.

    An empty parameter vector signals that the model is not calibratable.
    Models behave as immutable: :meth:`with_parameters` returns a new instance
    and may return ``self`` only when the parameters are unchanged.
    """

    @abc.abstractmethod
    def get_parameters(self):
        raise NotImplementedError

    @abc.abstractmethod
    def with_parameters(self, parameters):
        raise NotImplementedError

    @abc.abstractmethod
    def clone(self):
        raise NotImplementedError

    def clone_with_modified_data(self, data_modified):
        """Return a clone where the named properties are replaced.

        Keys a model does not know are ignored.
        """
        return self.clone()

    def get_clone_calibrated(self, calibration_model, calibration_products, calibration_parameters=None):
        """Return a clone of this model calibrated to the given products.

        Parameters
        ----------
        calibration_model : object
            Term-structure model providing curves and tenor structure. Must
            provide ``get_clone_with_modified_covariance_model``.
        calibration_products : list[CalibrationProduct]
            Products with target values and weights.
        calibration_parameters : dict or None
            Optional settings, see :class:`~covariance_calibration.config.CalibrationConfig`.

        Raises
        ------
        CalibrationError
            If the optimizer fails or a trial model cannot be simulated.
        """
        from ..calibration import Calibrator

        calibrator = Calibrator(self, calibration_model, calibration_products, calibration_parameters)
        return calibrator.calibrate()

    def __repr__(self):
        return "%s(parameters=%s)" % (type(self).__name__, list(self.get_parameters()))
