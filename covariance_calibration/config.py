import logging
import os

logger = logging.getLogger(__name__)


class CalibrationConfig:
    """Central configuration object for a calibration run.

    All numerical knobs of the generic calibration live here. The calibration
    entry point receives them as an in-memory key/value map; use
    :meth:`from_mapping` to turn that map into a config.

    Parameters
    ----------
    number_of_paths : int
        Paths of the Brownian driver built when none is supplied.
    seed : int
        Seed of that Brownian driver.
    max_iterations : int
        Iteration cap handed to the default optimizer.
    accuracy : float
        Convergence threshold handed to the default optimizer.
    parameter_step : float
        Uniform finite-difference step for every parameter.
    brownian_motion : BrownianMotion or None
        Driver shared by all trial simulations. ``None`` builds one from the
        model's time grid and factor count.
    optimizer_factory : OptimizerFactory or None
        ``None`` selects Levenberg-Marquardt with ``optimizer_threads`` workers.

    Notes
    -----
    - ``number_of_threads`` sizes the product valuation pool. ``0`` (or a
      negative value) disables the pool; products are then valued inline.
    - ``simulation_factory`` is called as ``factory(model, brownian_motion)``
      to build the path simulation for every trial parameter vector.
    """

    RECOGNIZED_KEYS = (
        "number_of_paths",
        "seed",
        "max_iterations",
        "accuracy",
        "parameter_step",
        "brownian_motion",
        "optimizer_factory",
        "number_of_threads",
        "optimizer_threads",
        "simulation_factory",
    )

    # camelCase spellings of the calibration parameter map
    ALIASES = {
        "numberOfPaths": "number_of_paths",
        "maxIterations": "max_iterations",
        "parameterStep": "parameter_step",
        "brownianMotion": "brownian_motion",
        "optimizerFactory": "optimizer_factory",
        "numberOfThreads": "number_of_threads",
        "optimizerThreads": "optimizer_threads",
        "simulationFactory": "simulation_factory",
    }

    def __init__(
        self,
        number_of_paths=2000,
        seed=31415,
        max_iterations=400,
        accuracy=1e-7,
        parameter_step=1e-4,
        brownian_motion=None,
        optimizer_factory=None,
        number_of_threads=None,
        optimizer_threads=2,
        simulation_factory=None,
    ):
        # ----------------
        # Monte Carlo
        # ----------------
        self.number_of_paths = int(number_of_paths)
        self.seed = int(seed)
        self.brownian_motion = brownian_motion
        self.simulation_factory = simulation_factory

        # ----------------
        # Optimizer
        # ----------------
        self.max_iterations = int(max_iterations)
        self.accuracy = float(accuracy)
        self.parameter_step = float(parameter_step)
        self.optimizer_factory = optimizer_factory
        self.optimizer_threads = int(optimizer_threads)

        # ----------------
        # Product valuation
        # ----------------
        if number_of_threads is None:
            number_of_threads = os.cpu_count() or 1
        self.number_of_threads = int(number_of_threads)

        self.validate()

    @classmethod
    def from_mapping(cls, calibration_parameters=None):
        """Build a config from the calibration parameter map.

        Keys are snake_case or their camelCase spelling (``numberOfPaths``,
        ``maxIterations``, ...). Missing keys take their defaults. Unknown keys
        are ignored with a warning.
        """
        kwargs = {}
        for key, value in (calibration_parameters or {}).items():
            name = cls.ALIASES.get(key, key)
            if name not in cls.RECOGNIZED_KEYS:
                logger.warning("Ignoring unknown calibration parameter %r", key)
                continue
            if name in kwargs:
                raise ValueError("Calibration parameter %r given more than once (as %r)" % (name, key))
            kwargs[name] = value
        return cls(**kwargs)

    def validate(self):
        if self.number_of_paths <= 0:
            raise ValueError("number_of_paths must be positive, got %d" % self.number_of_paths)
        if self.max_iterations <= 0:
            raise ValueError("max_iterations must be positive, got %d" % self.max_iterations)
        if not self.accuracy > 0.0:
            raise ValueError("accuracy must be positive, got %r" % self.accuracy)
        if not self.parameter_step > 0.0:
            raise ValueError("parameter_step must be positive, got %r" % self.parameter_step)
        if self.optimizer_threads <= 0:
            raise ValueError("optimizer_threads must be positive, got %d" % self.optimizer_threads)

    def to_dict(self):
        """Snapshot of the scalar knobs (objects such as the driver are skipped)."""
        d = {}
        for k, v in self.__dict__.items():
            if isinstance(v, (int, float, str, bool)):
                d[k] = v
        return d
