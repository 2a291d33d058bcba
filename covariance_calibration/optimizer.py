import abc
import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np
from scipy import optimize

from .covariance.base import parameter_vector
from .errors import SolverError

logger = logging.getLogger(__name__)


class Optimizer(abc.ABC):
    """A least-squares optimizer fitting an objective function to targets."""

    @abc.abstractmethod
    def run(self):
        """Run to convergence. Raises :class:`SolverError` on breakdown."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_best_fit_parameters(self):
        raise NotImplementedError

    @abc.abstractmethod
    def get_iterations(self):
        raise NotImplementedError


class OptimizerFactory(abc.ABC):
    @abc.abstractmethod
    def get_optimizer(self, objective_function, initial_parameters, lower_bound, upper_bound, parameter_steps,
                      target_values, weights=None):
        raise NotImplementedError


class LevenbergMarquardt(Optimizer):
    """Weighted least squares on top of :func:`scipy.optimize.least_squares`.

    Minimizes ``sum_i (w_i (f_i(p) - y_i))^2`` where ``f`` is the objective
    function, ``y`` the target values and ``w`` the weights.

    Parameters
    ----------
    objective_function : callable
        Maps a parameter vector to a vector of values (same length as the
        targets). Must be safe to call from several threads at once.
    initial_parameters : array-like
        Starting point.
    target_values : array-like
        Values the objective should reproduce.
    lower_bound, upper_bound : array-like or None
        Box constraints (``None`` means unbounded).
    parameter_steps : array-like or None
        Forward-difference steps of the Jacobian, one per parameter.
    weights : array-like or None
        Residual weights (default 1).
    max_iterations : int
        Cap on the number of objective evaluations.
    accuracy : float
        Used for ``xtol``, ``ftol`` and ``gtol``.
    number_of_threads : int
        Workers evaluating the Jacobian columns.

    Notes
    -----
    - The ``lm`` method (MINPACK) is used for unbounded problems with at least
      as many targets as parameters, ``trf`` otherwise.
    - A finite-difference step that would leave the box is taken backwards.
    """

    def __init__(
        self,
        objective_function,
        initial_parameters,
        target_values,
        lower_bound=None,
        upper_bound=None,
        parameter_steps=None,
        weights=None,
        max_iterations=400,
        accuracy=1e-7,
        number_of_threads=2,
    ):
        self.objective_function = objective_function
        self.initial_parameters = parameter_vector(initial_parameters)
        self.target_values = parameter_vector(target_values)

        n = self.initial_parameters.size
        m = self.target_values.size
        self.lower_bound = self._vector_or_default(lower_bound, n, -np.inf)
        self.upper_bound = self._vector_or_default(upper_bound, n, np.inf)
        self.parameter_steps = self._vector_or_default(parameter_steps, n, 1e-4)
        self.weights = self._vector_or_default(weights, m, 1.0)

        self.max_iterations = int(max_iterations)
        self.accuracy = float(accuracy)
        self.number_of_threads = max(int(number_of_threads), 1)

        self.best_fit_parameters = None
        self.best_fit_values = None
        self.iterations = 0
        self.result = None
        self._executor = None

    @staticmethod
    def _vector_or_default(values, length, default):
        if values is None:
            return parameter_vector(np.full(length, default))
        values = parameter_vector(values)
        if values.size != length:
            raise ValueError("Expected a vector of length %d, got %d." % (length, values.size))
        return values

    # ----------------
    # Residuals
    # ----------------
    def _residuals(self, parameters):
        values = np.asarray(self.objective_function(parameter_vector(parameters)), dtype=float).reshape(-1)
        if values.size != self.target_values.size:
            raise SolverError(
                "Objective returned %d values for %d targets." % (values.size, self.target_values.size)
            )
        residuals = self.weights * (values - self.target_values)
        if not np.all(np.isfinite(residuals)):
            raise SolverError("Non-finite residuals at parameters %s." % list(parameters))
        return residuals

    def _jacobian(self, parameters):
        parameters = np.asarray(parameters, dtype=float)
        base = self._residuals(parameters)

        def column(j):
            step = self.parameter_steps[j]
            if parameters[j] + step > self.upper_bound[j]:
                step = -step
            shifted = parameters.copy()
            shifted[j] += step
            return (self._residuals(shifted) - base) / step

        columns = list(self._executor.map(column, range(parameters.size)))
        return np.column_stack(columns)

    # ----------------
    # Optimizer API
    # ----------------
    def _method(self):
        bounded = np.any(np.isfinite(self.lower_bound)) or np.any(np.isfinite(self.upper_bound))
        if bounded or self.target_values.size < self.initial_parameters.size:
            return "trf"
        return "lm"

    def run(self):
        if self.initial_parameters.size == 0:
            self.best_fit_parameters = self.initial_parameters
            self.iterations = 0
            return self

        x0 = np.clip(self.initial_parameters, self.lower_bound, self.upper_bound)
        method = self._method()
        try:
            with ThreadPoolExecutor(max_workers=self.number_of_threads, thread_name_prefix="jacobian") as executor:
                self._executor = executor
                result = optimize.least_squares(
                    self._residuals,
                    x0,
                    jac=self._jacobian,
                    bounds=(self.lower_bound, self.upper_bound),
                    method=method,
                    xtol=self.accuracy,
                    ftol=self.accuracy,
                    gtol=self.accuracy,
                    max_nfev=self.max_iterations,
                )
        except (ValueError, np.linalg.LinAlgError) as e:
            raise SolverError("Least-squares solver failed: %s" % e) from e
        finally:
            self._executor = None

        self.result = result
        self.best_fit_parameters = parameter_vector(result.x)
        self.best_fit_values = parameter_vector(result.fun)
        self.iterations = int(result.njev if result.njev is not None else result.nfev)
        logger.debug("%s finished with status %d: %s", method, result.status, result.message)
        return self

    def get_best_fit_parameters(self):
        return self.best_fit_parameters

    def get_iterations(self):
        return self.iterations

    @property
    def root_mean_squared_error(self):
        if self.result is None or self.result.fun.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(np.square(self.result.fun))))


class LevenbergMarquardtFactory(OptimizerFactory):
    """Builds :class:`LevenbergMarquardt` optimizers with fixed settings."""

    def __init__(self, max_iterations=400, accuracy=1e-7, number_of_threads=2):
        self.max_iterations = int(max_iterations)
        self.accuracy = float(accuracy)
        self.number_of_threads = int(number_of_threads)

    def get_optimizer(self, objective_function, initial_parameters, lower_bound, upper_bound, parameter_steps,
                      target_values, weights=None):
        return LevenbergMarquardt(
            objective_function,
            initial_parameters,
            target_values,
            lower_bound=lower_bound,
            upper_bound=upper_bound,
            parameter_steps=parameter_steps,
            weights=weights,
            max_iterations=self.max_iterations,
            accuracy=self.accuracy,
            number_of_threads=self.number_of_threads,
        )
