import numpy as np
import pytest

from conftest import ConstantCovarianceModel
from covariance_calibration.covariance.base import (
    join_parameters,
    parameter_vector,
    split_joint_parameters,
    split_parameters,
)
from covariance_calibration.covariance.blended import BlendedLocalVolatilityModel
from covariance_calibration.covariance.displaced import DisplacedLocalVolatilityModel
from covariance_calibration.covariance.exponential_decay import ExponentialDecayLocalVolatilityModel
from covariance_calibration.covariance.volatility_correlation import ExponentialFormCovarianceModel
from covariance_calibration.errors import UnsupportedOperationError
from covariance_calibration.market import QuantLibForwardCurve


@pytest.fixture
def exponential_form(time_discretization, libor_period_discretization):
    return ExponentialFormCovarianceModel(
        time_discretization, libor_period_discretization, 3, [0.1, 0.05, 0.5, 0.02, 0.1]
    )


def sample_loadings(model, states):
    out = []
    for time_index in (0, 3, 7):
        for component in (0, 4, 9):
            for state in states:
                out.append(np.asarray(model.get_factor_loading(time_index, component, state), dtype=float))
    return out


STATES = [None, [0.03] * 10, [np.array([0.01, 0.05])] * 10]


def test_parameter_vector_is_read_only():
    p = parameter_vector([1.0, 2.0])
    assert p.dtype == float
    with pytest.raises(ValueError):
        p[0] = 3.0


def test_join_and_split_parameters():
    joint = join_parameters([1.0, 2.0], [3.0])
    assert list(joint) == [1.0, 2.0, 3.0]
    inner, own = split_parameters(joint, 1)
    assert list(inner) == [1.0, 2.0]
    assert list(own) == [3.0]
    with pytest.raises(ValueError):
        split_parameters(joint, 4)


def test_split_joint_parameters_checks_length(exponential_form):
    with pytest.raises(ValueError):
        split_joint_parameters(exponential_form, [0.0] * 5, 1, True)
    inner, own = split_joint_parameters(exponential_form, [0.0] * 5, 1, False)
    assert own is None
    assert inner.size == 5


@pytest.mark.parametrize("is_calibratable", [False, True])
def test_decorator_round_trip(exponential_form, time_discretization, is_calibratable):
    decorators = [
        DisplacedLocalVolatilityModel(exponential_form, 0.02, is_calibratable),
        BlendedLocalVolatilityModel(exponential_form, 0.3, is_calibratable=is_calibratable),
        ExponentialDecayLocalVolatilityModel(exponential_form, 0.1, is_calibratable),
    ]
    for model in decorators:
        rebuilt = model.with_parameters(model.get_parameters())
        for a, b in zip(sample_loadings(model, STATES), sample_loadings(rebuilt, STATES)):
            np.testing.assert_array_equal(a, b)

        cloned = model.clone()
        assert cloned is not model
        np.testing.assert_array_equal(cloned.get_parameters(), model.get_parameters())


def test_non_calibratable_forwarding(exponential_form):
    model = DisplacedLocalVolatilityModel(exponential_form, 0.02, is_calibratable=False)
    np.testing.assert_array_equal(model.get_parameters(), exponential_form.get_parameters())

    new_parameters = [0.2, 0.05, 0.5, 0.02, 0.3]
    changed = model.with_parameters(new_parameters)
    assert changed.displacement == 0.02
    np.testing.assert_array_equal(changed.covariance_model.get_parameters(), new_parameters)
    np.testing.assert_array_equal(changed.get_parameters(), new_parameters)


def test_calibratable_block_is_appended(exponential_form):
    model = BlendedLocalVolatilityModel(exponential_form, 0.3, is_calibratable=True)
    parameters = model.get_parameters()
    assert parameters.size == 6
    assert parameters[-1] == 0.3

    changed = model.with_parameters([0.1, 0.05, 0.5, 0.02, 0.1, 0.7])
    assert changed.displacement == 0.7
    assert changed.covariance_model is exponential_form


def test_with_parameters_wrong_length_raises(exponential_form):
    model = DisplacedLocalVolatilityModel(exponential_form, 0.02, is_calibratable=True)
    with pytest.raises(ValueError):
        model.with_parameters([0.1, 0.2])


def test_with_parameters_none_returns_self(exponential_form):
    model = DisplacedLocalVolatilityModel(exponential_form, 0.02, is_calibratable=True)
    assert model.with_parameters(None) is model


def test_displacement_identity(constant_model):
    model = DisplacedLocalVolatilityModel(constant_model, 0.0)
    state = [0.03] * 10
    assert model.get_factor_loading(2, 4, state) == pytest.approx([0.2 * 0.03, 0.2 * 0.03])


def test_displaced_without_state_is_unchanged(constant_model):
    model = DisplacedLocalVolatilityModel(constant_model, 0.05)
    assert model.get_factor_loading(2, 4, None) == [0.2, 0.2]
    assert model.get_factor_loading(2, 4, [None] * 10) == [0.2, 0.2]


def test_displaced_stochastic_state(constant_model):
    model = DisplacedLocalVolatilityModel(constant_model, 0.01)
    state = [np.array([0.02, 0.04])] * 10
    loading = model.get_factor_loading(0, 1, state)
    np.testing.assert_allclose(loading[0], 0.2 * np.array([0.03, 0.05]))


def test_blending_boundaries(constant_model):
    state = [0.04] * 10

    log_normal = BlendedLocalVolatilityModel(constant_model, 0.0)
    assert log_normal.get_factor_loading(1, 3, state) == pytest.approx([0.2 * 0.04] * 2)

    normal = BlendedLocalVolatilityModel(constant_model, 1.0)
    assert normal.get_factor_loading(1, 3, state) == pytest.approx([0.2, 0.2])
    assert normal.get_factor_loading(1, 3, [0.09] * 10) == pytest.approx([0.2, 0.2])


def test_blending_with_forward_curve(constant_model):
    curve = QuantLibForwardCurve.flat(0.03, period_length=0.5)
    model = BlendedLocalVolatilityModel(constant_model, 1.0, forward_curve=curve)

    # Component 3 starts at 2.0, time index 2 is 1.0.
    expected_level = curve.forward(1.0)
    assert model.get_reference_level(2, 3) == pytest.approx(expected_level)
    assert model.get_factor_loading(2, 3, [0.5] * 10) == pytest.approx([0.2 * expected_level] * 2)

    # Periods that already started use the spot forward.
    assert model.get_reference_level(10, 0) == pytest.approx(curve.forward(0.0))


def test_exponential_decay_scaling(constant_model):
    model = ExponentialDecayLocalVolatilityModel(constant_model, 0.4)
    # Component 2 starts at 1.5, time index 1 is 0.5.
    assert model.get_factor_loading(1, 2, None) == pytest.approx([0.2 * np.exp(-0.4)] * 2)


def test_decorators_do_not_provide_pseudo_inverse(constant_model):
    for model in (
        DisplacedLocalVolatilityModel(constant_model, 0.0),
        BlendedLocalVolatilityModel(constant_model, 0.5),
        ExponentialDecayLocalVolatilityModel(constant_model, 0.1),
    ):
        with pytest.raises(UnsupportedOperationError):
            model.get_factor_loading_pseudo_inverse(0, 0, 0, None)
        with pytest.raises(NotImplementedError):
            model.get_factor_loading_pseudo_inverse(0, 0, 0, None)


def test_unavailable_inner_loading_propagates(time_discretization, libor_period_discretization):
    class Unavailable(ConstantCovarianceModel):
        def get_factor_loading(self, time_index, component, realization_at_time_index):
            return None

    inner = Unavailable(time_discretization, libor_period_discretization)
    for model in (
        DisplacedLocalVolatilityModel(inner, 0.0),
        BlendedLocalVolatilityModel(inner, 0.5),
        ExponentialDecayLocalVolatilityModel(inner, 0.1),
    ):
        assert model.get_factor_loading(0, 0, [0.03] * 10) is None
        assert model.get_covariance(0, 0, 1, None) is None


def test_clone_with_modified_data(exponential_form):
    model = DisplacedLocalVolatilityModel(exponential_form, 0.02, is_calibratable=True)
    modified = model.clone_with_modified_data({"displacement": 0.5})
    assert modified.displacement == 0.5
    assert modified.is_calibratable
    np.testing.assert_array_equal(modified.covariance_model.get_parameters(), exponential_form.get_parameters())

    other = exponential_form.with_parameters([0.3, 0.0, 0.0, 0.0, 0.1])
    replaced = model.clone_with_modified_data({"covariance_model": other})
    assert replaced.covariance_model.get_parameters()[0] == 0.3


def test_covariance_is_scalar_product(constant_model):
    assert constant_model.get_covariance(0, 1, 2, None) == pytest.approx(2 * 0.2 * 0.2)


def test_factor_loading_for_time(exponential_form):
    expected = exponential_form.get_factor_loading(1, 5, None)
    assert exponential_form.get_factor_loading_for_time(0.7, 5, None) == pytest.approx(expected)


def test_models_are_exported_from_the_package():
    import covariance_calibration
    from covariance_calibration.covariance import heston, stochastic_volatility, volatility_correlation

    assert covariance_calibration.DisplacedLocalVolatilityModel is DisplacedLocalVolatilityModel
    assert covariance_calibration.BlendedLocalVolatilityModel is BlendedLocalVolatilityModel
    assert covariance_calibration.ExponentialDecayLocalVolatilityModel is ExponentialDecayLocalVolatilityModel
    assert covariance_calibration.ExponentialFormCovarianceModel is ExponentialFormCovarianceModel
    assert covariance_calibration.StochasticHestonVolatilityModel is heston.StochasticHestonVolatilityModel
    assert covariance_calibration.StochasticVolatilityModel is stochastic_volatility.StochasticVolatilityModel
    assert (
        covariance_calibration.CovarianceModelFromVolatilityAndCorrelation
        is volatility_correlation.CovarianceModelFromVolatilityAndCorrelation
    )
    for name in ("CovarianceModel", "ParametricCovarianceModel", "FourParameterExponentialVolatilityModel",
                 "ExponentialDecayCorrelationModel"):
        assert hasattr(covariance_calibration, name)
