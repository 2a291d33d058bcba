import numpy as np


class TimeDiscretization:
    """Sorted grid of time points.

    Used both as the simulation time grid and as the tenor (component) grid.
    Instances are immutable and may be shared between models.
    """

    def __init__(self, times):
        grid = np.unique(np.asarray([float(t) for t in times], dtype=float))
        if grid.size == 0:
            raise ValueError("A time discretization needs at least one time point.")
        grid.flags.writeable = False
        self._times = grid

    @classmethod
    def from_step(cls, initial, number_of_steps, delta):
        return cls(float(initial) + float(delta) * np.arange(int(number_of_steps) + 1))

    @property
    def times(self):
        return self._times

    @property
    def number_of_times(self):
        return int(self._times.size)

    @property
    def number_of_time_steps(self):
        return int(self._times.size) - 1

    def get_time(self, index):
        return float(self._times[index])

    def get_time_step(self, index):
        return float(self._times[index + 1] - self._times[index])

    def get_time_index(self, time):
        """Index of ``time`` on the grid, or ``None`` if it is not a grid point."""
        index = int(np.searchsorted(self._times, float(time)))
        if index < self._times.size and self._times[index] == float(time):
            return index
        return None

    def get_time_index_nearest_less_or_equal(self, time):
        """Largest index ``i`` with ``t_i <= time`` (``-1`` if time is before the grid)."""
        return int(np.searchsorted(self._times, float(time), side="right")) - 1

    def __len__(self):
        return self.number_of_times

    def __iter__(self):
        return iter(float(t) for t in self._times)

    def __eq__(self, other):
        if not isinstance(other, TimeDiscretization):
            return NotImplemented
        return np.array_equal(self._times, other._times)

    def __hash__(self):
        return hash(self._times.tobytes())

    def __repr__(self):
        return "TimeDiscretization(%s)" % np.array2string(self._times, precision=4)
