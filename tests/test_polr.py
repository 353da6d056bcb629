"""Tests for proportional-odds fitting, the null model and the score test.

With two categories the proportional-odds model is a logistic regression
with intercept -theta_1, which gives closed-form references for the fit,
the standard errors and the score statistic.
"""

from pathlib import Path

import numpy as np
import pytest
from numpy.testing import assert_allclose

from ordscan.errors import ConfigurationError
from ordscan.polr import fit_null_from_table, fit_null_model, fit_polr
from ordscan.polr.fit import observed_information, pack_params, unpack_params
from ordscan.polr.model import encode_response

from conftest import CAUSAL_VARIANT, simulate_ordinal


def _logistic_irls(y01: np.ndarray, design: np.ndarray, n_iter: int = 50):
    """Reference logistic regression by Newton-Raphson."""
    coef = np.zeros(design.shape[1])
    for _ in range(n_iter):
        mu = 1.0 / (1.0 + np.exp(-design @ coef))
        w = mu * (1.0 - mu)
        coef = coef + np.linalg.solve(
            design.T @ (w[:, None] * design), design.T @ (y01 - mu)
        )
    mu = 1.0 / (1.0 + np.exp(-design @ coef))
    info = design.T @ ((mu * (1.0 - mu))[:, None] * design)
    return coef, mu, info


@pytest.fixture
def binary_data():
    rng = np.random.default_rng(11)
    n = 400
    X = np.column_stack([rng.normal(size=n), rng.binomial(1, 0.4, n)])
    eta = 0.3 + X @ np.array([0.8, -0.5])
    y = 1 + (rng.uniform(size=n) < 1.0 / (1.0 + np.exp(-eta))).astype(int)
    return y, X


@pytest.mark.tier0
class TestParameterization:
    def test_pack_unpack_round_trip(self):
        theta = np.array([-1.2, 0.1, 2.5])
        beta = np.array([0.3, -0.7])
        t, b = unpack_params(pack_params(theta, beta), 4)
        assert_allclose(np.asarray(t), theta, rtol=1e-12)
        assert_allclose(np.asarray(b), beta)

    def test_thresholds_always_increasing(self):
        params = np.array([0.5, -30.0, 3.0])
        theta, _ = unpack_params(params, 4)
        assert np.all(np.diff(np.asarray(theta)) > 0)


@pytest.mark.tier0
class TestBinaryEquivalence:
    """K = 2 reduces to logistic regression."""

    def test_fit_matches_logistic_regression(self, binary_data):
        y, X = binary_data
        model = fit_null_model(y, X)
        coef, _, _ = _logistic_irls(y - 1, np.column_stack([np.ones(len(y)), X]))

        assert model.n_categories == 2
        assert_allclose(-model.theta[0], coef[0], atol=1e-4)
        assert_allclose(model.beta, coef[1:], atol=1e-4)

    def test_standard_errors_match_logistic_regression(self, binary_data):
        y, X = binary_data
        model = fit_null_model(y, X)
        _, _, info = _logistic_irls(y - 1, np.column_stack([np.ones(len(y)), X]))
        se_ref = np.sqrt(np.diag(np.linalg.inv(info)))

        assert_allclose(model.standard_errors(), se_ref, rtol=1e-3)

    def test_score_statistic_matches_logistic_score_test(self, binary_data):
        y, X = binary_data
        model = fit_null_model(y, X)
        rng = np.random.default_rng(3)
        z = rng.binomial(2, 0.3, len(y)).astype(float)

        # Reference at the model's own estimates
        design = np.column_stack([np.ones(len(y)), X])
        mu = 1.0 / (1.0 + np.exp(-(X @ model.beta - model.theta[0])))
        w = mu * (1.0 - mu)
        u = z @ (y - 1 - mu)
        dwz = design.T @ (w * z)
        info = z @ (w * z) - dwz @ np.linalg.solve(
            design.T @ (w[:, None] * design), dwz
        )

        ctx = model.score_test()
        ctx.activate(1)[:, 0] = z
        stat, df = ctx.statistic()
        assert df == 1
        assert_allclose(stat, u**2 / info, rtol=1e-6)


@pytest.mark.tier0
class TestFitNullModel:
    def test_multicategory_fit(self, study):
        model = fit_null_model(study.y, study.X, covariate_names=["age", "sex"])
        assert model.n == study.n_samples
        assert model.n_categories == 4
        assert np.all(np.diff(model.theta) > 0)
        assert model.coef_names == ["theta_1", "theta_2", "theta_3", "age", "sex"]
        assert model.deviance == pytest.approx(-2.0 * model.loglik)

    @pytest.mark.parametrize("link", ["probit", "cloglog", "cauchit"])
    def test_other_links_converge(self, study, link):
        model = fit_null_model(study.y, study.X, link=link)
        assert model.link == link
        assert np.isfinite(model.loglik)
        assert np.all(np.diff(model.theta) > 0)

    def test_no_covariates(self, study):
        model = fit_null_model(study.y)
        assert model.p == 0
        # Threshold-only fit reproduces the marginal cumulative proportions
        cum = np.cumsum(np.bincount(model.y - 1, minlength=4))[:-1] / model.n
        assert_allclose(1.0 / (1.0 + np.exp(-model.theta)), cum, atol=1e-4)

    def test_constant_weights_scale_loglik(self, study):
        unit = fit_null_model(study.y, study.X)
        weights = np.full(study.n_samples, 2.0)
        double = fit_null_model(study.y, study.X, weights=weights)
        assert_allclose(double.beta, unit.beta, atol=1e-4)
        assert_allclose(double.loglik, 2.0 * unit.loglik, rtol=1e-6)

    def test_non_integer_labels_are_ordered(self):
        rng = np.random.default_rng(5)
        x = rng.normal(size=200)
        y = np.array([0.5, 1.5, 3.0])[simulate_ordinal(rng, x, (-0.5, 0.5)) - 1]
        model = fit_null_model(y, x)
        assert_allclose(model.categories, [0.5, 1.5, 3.0])
        assert model.beta[0] > 0

    def test_constant_column_rejected(self, study):
        X = np.column_stack([study.X, np.ones(study.n_samples)])
        with pytest.raises(ConfigurationError, match="constant"):
            fit_null_model(study.y, X)

    def test_missing_covariate_rejected(self, study):
        X = study.X.copy()
        X[0, 0] = np.nan
        with pytest.raises(ConfigurationError, match="missing"):
            fit_null_model(study.y, X)

    def test_single_category_rejected(self):
        with pytest.raises(ConfigurationError, match="at least 2 categories"):
            encode_response(np.ones(10))

    def test_row_mismatch_rejected(self, study):
        with pytest.raises(ConfigurationError, match="rows"):
            fit_null_model(study.y, study.X[:-1])


@pytest.mark.tier0
class TestFitPolr:
    def test_warm_start_reaches_same_optimum(self, study):
        codes, _ = encode_response(study.y)
        cold = fit_polr(codes - 1, study.X, 4)
        warm = fit_polr(codes - 1, study.X, 4, start=(cold.theta, cold.beta))
        assert_allclose(warm.loglik, cold.loglik, rtol=1e-8)
        assert warm.n_iter <= cold.n_iter

    def test_observed_information_symmetric(self, null_model):
        info = observed_information(
            null_model.link,
            null_model.theta,
            null_model.beta,
            null_model.X,
            null_model.y - 1,
            null_model.weights,
        )
        assert info.shape == (5, 5)
        assert_allclose(info, info.T, atol=1e-8)
        assert np.all(np.linalg.eigvalsh(info) > 0)


@pytest.mark.tier0
class TestScoreTestContext:
    """Reusable score-test context."""

    def test_collinear_block_has_zero_df(self, null_model):
        ctx = null_model.score_test()
        ctx.activate(1)[:, 0] = null_model.X[:, 0]
        assert ctx.statistic()[1] == 0
        assert ctx.pvalue() == 1.0

    def test_duplicate_columns_reduce_rank(self, null_model, study):
        g = study.genotypes[:, 0]
        single = null_model.score_test().test(g)
        ctx = null_model.score_test(max_width=2)
        ctx.activate(2)[:] = np.column_stack([g, g])
        stat, df = ctx.statistic()
        assert df == 1
        assert_allclose(ctx.pvalue(), single, rtol=1e-6)

    def test_scale_invariance(self, null_model, study):
        g = study.genotypes[:, 1]
        ctx = null_model.score_test()
        assert_allclose(ctx.test(g), ctx.test(3.0 * g - 1.0), rtol=1e-6)

    def test_associated_variant_has_small_pvalue(self, null_model, study):
        p = null_model.score_test().test(study.genotypes[:, CAUSAL_VARIANT])
        assert p < 1e-4

    def test_width_outside_capacity(self, null_model):
        ctx = null_model.score_test(max_width=2)
        with pytest.raises(ValueError, match="capacity"):
            ctx.activate(3)

    def test_statistic_requires_active_block(self, null_model):
        with pytest.raises(RuntimeError, match="activate"):
            null_model.score_test().statistic()


@pytest.mark.tier0
class TestFitNullFromTable:
    def test_incomplete_rows_dropped(self, tmp_path: Path, study):
        path = tmp_path / "covariates.csv"
        rows = ["y,age,sex"]
        for i in range(study.n_samples):
            age = "NA" if i in (3, 10) else f"{study.X[i, 0]:.6f}"
            rows.append(f"{study.y[i]},{age},{int(study.X[i, 1])}")
        path.write_text("\n".join(rows) + "\n")

        model = fit_null_from_table(path, "y", ["age", "sex"])
        assert model.n == study.n_samples - 2
        assert 3 not in model.rows and 10 not in model.rows
        assert model.covariate_names == ["age", "sex"]

    def test_unknown_column(self, tmp_path: Path):
        path = tmp_path / "covariates.csv"
        path.write_text("y,age\n1,2.0\n2,3.0\n")
        with pytest.raises(KeyError, match="weight"):
            fit_null_from_table(path, "y", ["weight"])
