"""Proportional-odds (cumulative link) models.

- fit: JAX likelihood and BFGS fitting
- links: logit, probit, cloglog and cauchit links
- model: Fitted null model
- score: Reusable score-test context
"""

from ordscan.polr.fit import PolrFit, fit_polr
from ordscan.polr.model import FittedNullModel, fit_null_from_table, fit_null_model
from ordscan.polr.score import OrdinalScoreTest

__all__ = [
    "FittedNullModel",
    "OrdinalScoreTest",
    "PolrFit",
    "fit_null_from_table",
    "fit_null_model",
    "fit_polr",
]
