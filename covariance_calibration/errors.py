class CalculationError(Exception):
    """A valuation or simulation could not be carried out."""


class SolverError(Exception):
    """The optimizer broke down (singular update, non-finite residuals, bad input)."""


class CalibrationError(CalculationError):
    """Calibration failed. The underlying solver failure is kept as ``__cause__``."""


class UnsupportedOperationError(NotImplementedError):
    """The model deliberately does not provide the requested operation."""
