"""Parametric covariance models and their Monte Carlo calibration.

This package provides:
- Time grids and a seeded multi-factor Brownian driver
- An Euler scheme for small auxiliary processes
- Composable covariance models (displaced, blended, exponential decay,
  Heston-type and log-normal stochastic volatility, volatility/correlation form)
- A generic calibration engine (threaded product valuation, Levenberg-Marquardt)

Market curves come from QuantLib; calibration reports are pandas tables.
"""

from .brownian import BrownianMotion
from .calibration import CalibrationObjective, CalibrationProduct, Calibrator
from .config import CalibrationConfig
from .covariance.base import CovarianceModel, ParametricCovarianceModel
from .covariance.blended import BlendedLocalVolatilityModel
from .covariance.displaced import DisplacedLocalVolatilityModel
from .covariance.exponential_decay import ExponentialDecayLocalVolatilityModel
from .covariance.heston import StochasticHestonVolatilityModel
from .covariance.stochastic_volatility import StochasticVolatilityModel
from .covariance.volatility_correlation import (
    CovarianceModelFromVolatilityAndCorrelation,
    ExponentialDecayCorrelationModel,
    ExponentialFormCovarianceModel,
    FourParameterExponentialVolatilityModel,
)
from .discretization import TimeDiscretization
from .errors import CalculationError, CalibrationError, SolverError, UnsupportedOperationError
from .market import QuantLibForwardCurve
from .optimizer import LevenbergMarquardt, LevenbergMarquardtFactory
from .process import EulerScheme, MonteCarloSimulation, ProcessModel
