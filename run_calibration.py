import logging

import numpy as np

from covariance_calibration import (
    BlendedLocalVolatilityModel,
    BrownianMotion,
    CalibrationProduct,
    Calibrator,
    CovarianceModelFromVolatilityAndCorrelation,
    ExponentialDecayCorrelationModel,
    FourParameterExponentialVolatilityModel,
    ProcessModel,
    QuantLibForwardCurve,
    TimeDiscretization,
)
from covariance_calibration.concurrency import InlineTaskRunner
from covariance_calibration.reporting import calibration_summary, rms_error


class ForwardRateModel(ProcessModel):
    """Driftless forward-rate model on a tenor grid.

    Only meant to exercise the calibration: each component is a forward rate
    ``L_i`` with ``dL_i = f_i(t, L) . dW`` where ``f_i`` is the factor loading of
    the covariance model. There is no drift adjustment.
    """

    def __init__(self, forward_curve, covariance_model):
        self.forward_curve = forward_curve
        self.covariance_model = covariance_model

    @property
    def time_discretization(self):
        return self.covariance_model.time_discretization

    @property
    def libor_period_discretization(self):
        return self.covariance_model.libor_period_discretization

    @property
    def number_of_components(self):
        return self.libor_period_discretization.number_of_time_steps

    @property
    def number_of_factors(self):
        return self.covariance_model.number_of_factors

    def get_initial_state(self):
        starts = self.libor_period_discretization.times[:-1]
        return [self.forward_curve.forward(t) for t in starts]

    def get_drift(self, time_index, realization_at_time_index):
        return None

    def get_factor_loading(self, time_index, component, realization_at_time_index):
        return self.covariance_model.get_factor_loading(time_index, component, realization_at_time_index)

    def get_clone_with_modified_covariance_model(self, covariance_model):
        return ForwardRateModel(self.forward_curve, covariance_model)


class Caplet:
    """Caplet on period ``component`` paying ``max(L - strike, 0)`` at the period end."""

    def __init__(self, component, strike):
        self.component = component
        self.strike = strike

    def value(self, evaluation_time, simulation):
        model = simulation.model
        fixing = model.libor_period_discretization.get_time(self.component)
        payment = model.libor_period_discretization.get_time(self.component + 1)

        time_index = simulation.time_discretization.get_time_index(fixing)
        forward = simulation.get_process_value(time_index, self.component)
        payoff = np.maximum(forward - self.strike, 0.0) * (payment - fixing)
        return payoff * model.forward_curve.discount_factor(payment)


def build_covariance_model(time_discretization, libor_period_discretization, forward_curve, volatility_parameters):
    """Blended model over exponential volatility and a fixed 3-factor correlation."""
    volatility = FourParameterExponentialVolatilityModel(
        time_discretization, libor_period_discretization, *volatility_parameters
    )
    correlation = ExponentialDecayCorrelationModel(
        time_discretization, libor_period_discretization, 3, 0.1, is_calibratable=False
    )
    return BlendedLocalVolatilityModel(
        CovarianceModelFromVolatilityAndCorrelation(
            time_discretization, libor_period_discretization, volatility, correlation
        ),
        0.5,
        forward_curve=forward_curve,
    )


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")

    # -------------------------------------------------------------------------
    # 0. Grids and market
    # -------------------------------------------------------------------------
    time_discretization = TimeDiscretization.from_step(0.0, 20, 0.25)
    libor_period_discretization = TimeDiscretization.from_step(0.0, 10, 0.5)
    curve = QuantLibForwardCurve.flat(0.03, period_length=0.5)
    brownian_motion = BrownianMotion(time_discretization, 3, 2000, 31415)
    settings = {"brownian_motion": brownian_motion}

    caplets = [Caplet(component, 0.03) for component in range(1, 10)]

    # -------------------------------------------------------------------------
    # 1. Synthetic market: caplet prices of a known model
    # -------------------------------------------------------------------------
    true_parameters = [0.15, 0.05, 0.6, 0.1]
    true_model = build_covariance_model(time_discretization, libor_period_discretization, curve, true_parameters)
    market_model = ForwardRateModel(curve, true_model)

    pricing = Calibrator(true_model, market_model, [CalibrationProduct(c, 0.0) for c in caplets], settings)
    market_prices = pricing.create_objective(InlineTaskRunner())(true_model.get_parameters())

    products = [
        CalibrationProduct(c, price, name="caplet_%d" % c.component)
        for c, price in zip(caplets, market_prices)
    ]

    # -------------------------------------------------------------------------
    # 2. Calibrate a perturbed model
    # -------------------------------------------------------------------------
    print("--- Calibrating ---")
    start_model = build_covariance_model(
        time_discretization, libor_period_discretization, curve, [0.2, 0.03, 0.5, 0.08]
    )

    calibrator = Calibrator(start_model, market_model, products, settings)
    calibrated = calibrator.calibrate()

    print("Iterations: %d" % calibrator.iterations)
    print("True parameters:       %s" % np.round(true_parameters, 5))
    print("Calibrated parameters: %s" % np.round(calibrated.get_parameters(), 5))

    # -------------------------------------------------------------------------
    # 3. Summary
    # -------------------------------------------------------------------------
    summary = calibration_summary(calibrator.create_objective(InlineTaskRunner()), calibrator.best_fit_parameters)
    print(summary.to_string(index=False))
    print("RMS error: %.3e" % rms_error(summary))


if __name__ == "__main__":
    main()
