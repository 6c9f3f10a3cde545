########################################################################################
##
##                                  TESTS FOR
##                                 'options.py'
##
########################################################################################

# IMPORTS ==============================================================================

import numpy as np
import pytest

from oefpil.options import EstimatorOptions


# TESTS ================================================================================

class TestDefaults:

    def test_default_values(self):
        opts = EstimatorOptions()
        assert opts.criterion == "function"
        assert opts.max_iterations == 100
        assert opts.tolerance == 1e-10
        assert opts.alpha == 0.05
        assert opts.method == "oefpil"
        assert opts.fun_diff_mu is None
        assert opts.fun_diff_beta is None
        assert not opts.verbose
        assert not opts.plot
        assert not opts.sparse

    def test_default_delta_is_cube_root_of_eps(self):
        opts = EstimatorOptions()
        assert opts.delta == pytest.approx(np.finfo(float).eps ** (1 / 3))

    def test_names_are_lower_cased(self):
        opts = EstimatorOptions(criterion="WeightedResiduals", method="OEFPILRS2")
        assert opts.criterion == "weightedresiduals"
        assert opts.method == "oefpilrs2"


class TestValidation:

    @pytest.mark.parametrize("value", [0, -3, 2.5])
    def test_invalid_max_iterations(self, value):
        with pytest.raises(ValueError):
            EstimatorOptions(max_iterations=value)

    def test_bool_max_iterations_rejected(self):
        with pytest.raises(ValueError):
            EstimatorOptions(max_iterations=True)

    @pytest.mark.parametrize("value", [0.0, -1e-8])
    def test_invalid_tolerance(self, value):
        with pytest.raises(ValueError):
            EstimatorOptions(tolerance=value)

    @pytest.mark.parametrize("value", [0.0, -1e-6, np.inf])
    def test_invalid_delta(self, value):
        with pytest.raises(ValueError):
            EstimatorOptions(delta=value)

    @pytest.mark.parametrize("value", [0.0, 1.0, 1.5])
    def test_invalid_alpha(self, value):
        with pytest.raises(ValueError):
            EstimatorOptions(alpha=value)

    def test_alpha_none_allowed(self):
        assert EstimatorOptions(alpha=None).alpha is None

    def test_non_callable_derivative_rejected(self):
        with pytest.raises(TypeError):
            EstimatorOptions(fun_diff_mu=3.0)

    def test_invalid_workers(self):
        with pytest.raises(ValueError):
            EstimatorOptions(workers=0)


class TestFromMapping:

    def test_none_gives_defaults(self):
        assert EstimatorOptions.from_mapping(None) == EstimatorOptions()

    def test_original_option_names(self):
        d_mu = lambda mu, beta: [np.ones(3), -np.ones(3)]
        opts = EstimatorOptions.from_mapping({
            "maxit": 7,
            "tol": 1e-6,
            "isPlot": False,
            "isSparse": True,
            "funDiff_mu": d_mu,
        })
        assert opts.max_iterations == 7
        assert opts.tolerance == 1e-6
        assert opts.sparse
        assert opts.fun_diff_mu is d_mu

    def test_derivatives_are_plain_fields(self):
        d_beta = lambda mu, beta: np.ones((3, 2))
        opts = EstimatorOptions.from_mapping({"funDiff_beta": d_beta})
        assert opts.fun_diff_beta is d_beta
        assert opts.fun_diff_mu is None
        assert not [name for name in dir(EstimatorOptions) if name.startswith("has_")]

    def test_field_names(self):
        opts = EstimatorOptions.from_mapping({"criterion": "parameterdifferences"})
        assert opts.criterion == "parameterdifferences"

    def test_unknown_key_raises(self):
        with pytest.raises(ValueError, match="Unknown estimator option"):
            EstimatorOptions.from_mapping({"maxiter": 3})

    def test_options_instance_is_copied(self):
        opts = EstimatorOptions(max_iterations=5)
        copy = EstimatorOptions.from_mapping(opts)
        assert copy == opts
        assert copy is not opts

    def test_replace_validates(self):
        opts = EstimatorOptions()
        assert opts.replace(tolerance=1e-4).tolerance == 1e-4
        with pytest.raises(ValueError):
            opts.replace(tolerance=-1.0)
