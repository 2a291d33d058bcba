import numpy as np


class BrownianMotion:
    """Multi-factor Brownian driver on a fixed time grid.

    All increments are drawn once, at construction, from
    ``numpy.random.default_rng(seed)`` and stored read-only. The same driver is
    therefore safe to share between concurrently evaluated trial simulations
    (common random numbers across the whole calibration).

    Parameters
    ----------
    time_discretization : TimeDiscretization
        Simulation time grid.
    number_of_factors : int
        Independent Brownian factors.
    number_of_paths : int
        Monte Carlo paths.
    seed : int
        Seed of the random number generator.
    """

    def __init__(self, time_discretization, number_of_factors, number_of_paths, seed):
        self.time_discretization = time_discretization
        self.number_of_factors = int(number_of_factors)
        self.number_of_paths = int(number_of_paths)
        self.seed = int(seed)

        if self.number_of_factors <= 0 or self.number_of_paths <= 0:
            raise ValueError("Brownian motion needs a positive number of factors and paths.")

        steps = time_discretization.number_of_time_steps
        dt = np.diff(time_discretization.times)

        rng = np.random.default_rng(self.seed)
        normals = rng.standard_normal((steps, self.number_of_factors, self.number_of_paths))
        increments = normals * np.sqrt(dt)[:, None, None]
        increments.flags.writeable = False
        self._increments = increments

    def get_brownian_increment(self, time_index, factor):
        """Increment ``W(t_{i+1}) - W(t_i)`` of the given factor, one entry per path."""
        return self._increments[time_index, factor]

    def get_random_variable_for_constant(self, value):
        return float(value)

    def __repr__(self):
        return "BrownianMotion(factors=%d, paths=%d, seed=%d, steps=%d)" % (
            self.number_of_factors,
            self.number_of_paths,
            self.seed,
            self.time_discretization.number_of_time_steps,
        )
