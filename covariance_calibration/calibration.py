import functools
import logging

import numpy as np

from .brownian import BrownianMotion
from .concurrency import create_task_runner
from .config import CalibrationConfig
from .covariance.base import parameter_vector
from .errors import CalculationError, CalibrationError, SolverError
from .optimizer import LevenbergMarquardtFactory
from .process import MonteCarloSimulation

logger = logging.getLogger(__name__)


class CalibrationProduct:
    """A calibration instrument with its target value and weight.

    Parameters
    ----------
    product : object
        Anything with a ``value(evaluation_time, simulation)`` method.
    target_value : float
        Value the calibrated model should reproduce.
    weight : float
        Weight of the residual of this product.
    name : str or None
        Label used in logs and reports.
    priority : int
        Valuation tasks of lower priority start first. Does not affect the
        order of the returned values.

    Notes
    -----
    A product that raises, or returns ``None``, NaN or an infinite value on
    any path, counts as failed for that evaluation and contributes its target
    value instead.
    """

    def __init__(self, product, target_value, weight=1.0, name=None, priority=0):
        self.product = product
        self.target_value = target_value
        self.weight = float(weight)
        self.name = name
        self.priority = int(priority)

    @classmethod
    def from_arrays(cls, products, target_values, weights=None):
        """Pair parallel arrays of products, targets and (optional) weights."""
        products = list(products)
        target_values = list(target_values)
        weights = [1.0] * len(products) if weights is None else list(weights)
        if not len(products) == len(target_values) == len(weights):
            raise ValueError(
                "Got %d products, %d target values and %d weights."
                % (len(products), len(target_values), len(weights))
            )
        return [cls(p, t, w) for p, t, w in zip(products, target_values, weights)]

    def value(self, simulation):
        return self.product.value(0.0, simulation)

    def __repr__(self):
        return "CalibrationProduct(name=%r, target_value=%r, weight=%r)" % (self.name, self.target_value, self.weight)


class ValuationResult:
    """Outcome of valuing one product: a value or the error it raised."""

    def __init__(self, value=None, error=None):
        self.value = value
        self.error = error

    @property
    def failed(self):
        return self.error is not None

    @classmethod
    def capture(cls, valuation):
        """Run ``valuation``. An exception or a non-finite value is a failure."""
        try:
            value = valuation()
        except Exception as e:
            return cls(error=e)
        if not is_finite(value):
            return cls(error=CalculationError("Non-finite value %r." % (value,)))
        return cls(value=value)

    def __repr__(self):
        if self.failed:
            return "ValuationResult(error=%r)" % (self.error,)
        return "ValuationResult(value=%r)" % (self.value,)


def is_finite(value):
    """True if ``value`` is available and finite on every path."""
    return value is not None and bool(np.all(np.isfinite(value)))


def to_float(value):
    """Reduce a stochastic value to a float (the mean over paths)."""
    return float(np.mean(value))


def substitute_failures(results, target_values):
    """Values of ``results`` with every failure replaced by its target value.

    A failed product then contributes a zero residual instead of aborting the
    evaluation. Non-finite values count as failures.
    """
    if len(results) != len(target_values):
        raise ValueError("Got %d results for %d target values." % (len(results), len(target_values)))
    values = [
        to_float(target) if result.failed or not is_finite(result.value) else to_float(result.value)
        for result, target in zip(results, target_values)
    ]
    return np.array(values, dtype=float)


class CalibrationObjective:
    """Maps a trial parameter vector to the values of the calibration products.

    For every call the covariance model is rebuilt with the trial parameters,
    substituted into the calibration model and simulated with the shared
    Brownian driver; then every product is valued on the task runner.

    Parameters
    ----------
    covariance_model : ParametricCovarianceModel
        Model being calibrated.
    calibration_model : object
        Provides ``get_clone_with_modified_covariance_model(covariance_model)``.
    calibration_products : list[CalibrationProduct]
    brownian_motion : BrownianMotion
        Shared read-only by all evaluations.
    task_runner : TaskRunner
        Runs the valuation tasks of one evaluation.
    simulation_factory : callable
        ``factory(model, brownian_motion)`` returning the simulation handed to
        the products.
    """

    def __init__(self, covariance_model, calibration_model, calibration_products, brownian_motion, task_runner,
                 simulation_factory=MonteCarloSimulation):
        self.covariance_model = covariance_model
        self.calibration_model = calibration_model
        self.calibration_products = list(calibration_products)
        self.brownian_motion = brownian_motion
        self.task_runner = task_runner
        self.simulation_factory = simulation_factory or MonteCarloSimulation

    @property
    def target_values(self):
        return [p.target_value for p in self.calibration_products]

    @property
    def weights(self):
        return np.array([p.weight for p in self.calibration_products], dtype=float)

    def build_simulation(self, parameters):
        covariance_model = self.covariance_model.with_parameters(parameter_vector(parameters))
        model = self.calibration_model.get_clone_with_modified_covariance_model(covariance_model)
        return self.simulation_factory(model, self.brownian_motion)

    def valuation_results(self, parameters):
        simulation = self.build_simulation(parameters)
        tasks = [
            functools.partial(ValuationResult.capture, functools.partial(product.value, simulation))
            for product in self.calibration_products
        ]
        priorities = [product.priority for product in self.calibration_products]
        return self.task_runner.run(tasks, priorities=priorities)

    def __call__(self, parameters):
        results = self.valuation_results(parameters)

        failed = [
            (i, product.name, result.error)
            for i, (product, result) in enumerate(zip(self.calibration_products, results))
            if result.failed
        ]
        if failed:
            logger.warning(
                "Valuation failed for %d of %d products, using target values instead: %s",
                len(failed),
                len(results),
                "; ".join("%s: %s" % (name if name is not None else i, error) for i, name, error in failed),
            )

        return substitute_failures(results, self.target_values)


class Calibrator:
    """Calibrates a parametric covariance model to a set of products.

    Parameters
    ----------
    covariance_model : ParametricCovarianceModel
        Model to calibrate. Its current parameters are the initial guess.
    calibration_model : object
        Term-structure model providing curves and tenor structure, with
        ``get_clone_with_modified_covariance_model``.
    calibration_products : list[CalibrationProduct]
    calibration_parameters : dict, CalibrationConfig or None
        Settings, see :class:`CalibrationConfig`.

    Notes
    -----
    - All parameters are unbounded; every parameter uses the same
      finite-difference step ``parameter_step``.
    - After :meth:`calibrate`, ``iterations`` and ``best_fit_parameters``
      hold the optimizer's outcome.
    """

    def __init__(self, covariance_model, calibration_model, calibration_products, calibration_parameters=None):
        self.covariance_model = covariance_model
        self.calibration_model = calibration_model
        self.calibration_products = list(calibration_products)
        if not self.calibration_products:
            raise ValueError("At least one calibration product is required.")

        if isinstance(calibration_parameters, CalibrationConfig):
            self.cfg = calibration_parameters
        else:
            self.cfg = CalibrationConfig.from_mapping(calibration_parameters)

        self.iterations = None
        self.best_fit_parameters = None

    def brownian_motion(self):
        if self.cfg.brownian_motion is not None:
            return self.cfg.brownian_motion
        return BrownianMotion(
            self.covariance_model.time_discretization,
            self.covariance_model.number_of_factors,
            self.cfg.number_of_paths,
            self.cfg.seed,
        )

    def optimizer_factory(self):
        if self.cfg.optimizer_factory is not None:
            return self.cfg.optimizer_factory
        return LevenbergMarquardtFactory(
            max_iterations=self.cfg.max_iterations,
            accuracy=self.cfg.accuracy,
            number_of_threads=self.cfg.optimizer_threads,
        )

    def create_objective(self, task_runner, brownian_motion=None):
        return CalibrationObjective(
            self.covariance_model,
            self.calibration_model,
            self.calibration_products,
            brownian_motion if brownian_motion is not None else self.brownian_motion(),
            task_runner,
            simulation_factory=self.cfg.simulation_factory,
        )

    def calibrate(self):
        """Run the calibration and return the calibrated model.

        Raises
        ------
        CalibrationError
            If the optimizer breaks down, or a trial model or simulation cannot
            be built. The original error is the cause.
        """
        initial_parameters = self.covariance_model.get_parameters()
        n = initial_parameters.size
        lower_bound = np.full(n, -np.inf)
        upper_bound = np.full(n, np.inf)
        parameter_steps = np.full(n, self.cfg.parameter_step)

        with create_task_runner(self.cfg.number_of_threads) as task_runner:
            objective = self.create_objective(task_runner)
            optimizer = self.optimizer_factory().get_optimizer(
                objective,
                initial_parameters,
                lower_bound,
                upper_bound,
                parameter_steps,
                [to_float(t) for t in objective.target_values],
                objective.weights,
            )

            # Product valuation errors never get here, they are substituted per product.
            try:
                optimizer.run()

                self.iterations = optimizer.get_iterations()
                self.best_fit_parameters = parameter_vector(optimizer.get_best_fit_parameters())

                logger.debug("Calibration finished after %s iterations.", self.iterations)
                logger.debug("Best fit parameters: %s", list(self.best_fit_parameters))
                if logger.isEnabledFor(logging.DEBUG):
                    best_values = objective(self.best_fit_parameters)
                    for product, target, value in zip(self.calibration_products, objective.target_values, best_values):
                        logger.debug("  %s: target %.8g, value %.8g", product.name, to_float(target), value)

                return self.covariance_model.with_parameters(self.best_fit_parameters)
            except (SolverError, CalculationError) as e:
                raise CalibrationError(
                    "Calibration of %s failed: %s" % (type(self.covariance_model).__name__, e)
                ) from e
