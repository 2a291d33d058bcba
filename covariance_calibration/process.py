import abc
import threading

import numpy as np

from .errors import CalculationError


class ProcessModel(abc.ABC):
    """Interface of a model that can be stepped by :class:`EulerScheme`.

    The realizations handed to ``get_drift`` and ``get_factor_loading`` are the
    *transformed* process values (see ``apply_state_space_transform``).
    """

    @property
    @abc.abstractmethod
    def time_discretization(self):
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def number_of_components(self):
        raise NotImplementedError

    @property
    @abc.abstractmethod
    def number_of_factors(self):
        raise NotImplementedError

    @abc.abstractmethod
    def get_initial_state(self):
        """Initial values of all components (in the untransformed state space)."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_drift(self, time_index, realization_at_time_index):
        """Drift of all components, or ``None`` for a driftless model."""
        raise NotImplementedError

    @abc.abstractmethod
    def get_factor_loading(self, time_index, component, realization_at_time_index):
        raise NotImplementedError

    def apply_state_space_transform(self, component, value):
        return value

    def apply_state_space_transform_inverse(self, component, value):
        return value


class EulerScheme:
    """Euler-Maruyama discretization of a :class:`ProcessModel`.

    The whole grid is simulated on first access and kept. Simulation happens
    under an instance lock, so one scheme can be read from several valuation
    threads.

    Parameters
    ----------
    model : ProcessModel
        Model providing initial state, drift and factor loadings.
    brownian_motion : BrownianMotion
        Driver. The model consumes its first ``model.number_of_factors`` factors.
    """

    def __init__(self, model, brownian_motion):
        self.model = model
        self.brownian_motion = brownian_motion
        self._values = None
        self._lock = threading.Lock()

    @property
    def time_discretization(self):
        return self.brownian_motion.time_discretization

    def get_process_value(self, time_index, component):
        """Simulated value of ``component`` at ``time_index`` (one entry per path).

        Raises
        ------
        CalculationError
            If the process cannot be simulated or the index is off the grid.
        """
        values = self._simulated_values()
        if time_index < 0 or time_index >= len(values):
            raise CalculationError(
                "Time index %d is outside the simulated grid (0..%d)." % (time_index, len(values) - 1)
            )
        return values[time_index][component]

    def _simulated_values(self):
        with self._lock:
            if self._values is None:
                self._values = self._simulate()
            return self._values

    def _simulate(self):
        model = self.model
        bm = self.brownian_motion
        td = bm.time_discretization
        n_paths = bm.number_of_paths
        n_components = int(model.number_of_components)
        n_factors = int(model.number_of_factors)

        if n_factors > bm.number_of_factors:
            raise CalculationError(
                "Model requires %d factors, Brownian motion provides %d." % (n_factors, bm.number_of_factors)
            )

        # -----------------------------
        # 1) Initial state
        # -----------------------------
        state = [np.full(n_paths, float(x)) if np.ndim(x) == 0 else np.asarray(x, dtype=float)
                 for x in model.get_initial_state()]
        values = [[model.apply_state_space_transform(c, state[c]) for c in range(n_components)]]

        # -----------------------------
        # 2) Euler steps
        # -----------------------------
        for i in range(td.number_of_time_steps):
            dt = td.get_time_step(i)
            realization = values[-1]
            drift = model.get_drift(i, realization)

            new_state = []
            for c in range(n_components):
                loading = model.get_factor_loading(i, c, realization)
                if loading is None:
                    raise CalculationError("Factor loading unavailable at time index %d, component %d." % (i, c))

                increment = 0.0
                if drift is not None and drift[c] is not None:
                    increment = drift[c] * dt
                for f in range(n_factors):
                    increment = increment + loading[f] * bm.get_brownian_increment(i, f)

                new_state.append(state[c] + increment)

            if not all(np.all(np.isfinite(x)) for x in new_state):
                raise CalculationError("Non-finite process value at time index %d." % (i + 1))

            state = new_state
            values.append([model.apply_state_space_transform(c, state[c]) for c in range(n_components)])

        return values


class MonteCarloSimulation:
    """Path simulation of a model, as seen by calibration products.

    Built from a model, a stepping scheme and a Brownian driver. Nothing is
    simulated until a product asks for a process value.
    """

    def __init__(self, model, brownian_motion, scheme=EulerScheme):
        self.model = model
        self.brownian_motion = brownian_motion
        self.process = scheme(model, brownian_motion)

    @property
    def time_discretization(self):
        return self.brownian_motion.time_discretization

    @property
    def number_of_paths(self):
        return self.brownian_motion.number_of_paths

    def get_process_value(self, time_index, component):
        return self.process.get_process_value(time_index, component)
