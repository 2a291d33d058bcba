import numpy as np
import pandas as pd

from .calibration import substitute_failures, to_float

SUMMARY_COLUMNS = ["product", "target", "weight", "value", "residual", "failed"]


def calibration_summary(objective, parameters):
    """Per-product table of a calibration objective at ``parameters``.

    One row per product, in product order. Failed valuations show the target
    value (the value the optimizer saw) and ``failed=True``.
    """
    results = objective.valuation_results(parameters)
    values = substitute_failures(results, objective.target_values)

    rows = []
    for i, (product, result, value) in enumerate(zip(objective.calibration_products, results, values)):
        target = to_float(product.target_value)
        rows.append(
            {
                "product": product.name if product.name is not None else "product_%d" % i,
                "target": target,
                "weight": product.weight,
                "value": float(value),
                "residual": product.weight * (float(value) - target),
                "failed": result.failed,
            }
        )
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def rms_error(summary):
    """Root mean square of the weighted residuals of a summary table."""
    if summary.empty:
        return 0.0
    return float(np.sqrt(np.mean(np.square(summary["residual"].to_numpy(dtype=float)))))
