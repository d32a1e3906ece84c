"""
Bayesian logistic regression with Dirichlet-process mixture random intercepts.

Each stage of a sequential logit is a binary regression with fixed
effects, clustered random intercepts and, optionally, a penalized spline
term, fitted by a Polya-Gamma Gibbs sampler.

Currently included:
- `fit.fit_logit`: dispatcher over "ranef", "ranef_s", "dp_ranef", "dp_ranef_s".
- `fit.compare_models`: several methods on the same data with a DIC/WAIC table.
- `ranef_dp.logit_ranef_dp` / `ranef_dp_spline.logit_ranef_dp_spline`: the samplers.
- `summary`: posterior tables, occupied clusters and spline curves.

Dependencies: numpy, scipy, pandas
"""

from .fit import METHODS, compare_models, fit_logit
from .ranef_dp import LogitDPFit, LogitPrior, encode_strata, logit_ranef_dp
from .ranef_dp_spline import logit_ranef_dp_spline
from .summary import inefficiency_factor, occupied_clusters, posterior_summary, spline_curve

__all__ = [
    "METHODS",
    "LogitDPFit",
    "LogitPrior",
    "compare_models",
    "encode_strata",
    "fit_logit",
    "inefficiency_factor",
    "logit_ranef_dp",
    "logit_ranef_dp_spline",
    "occupied_clusters",
    "posterior_summary",
    "spline_curve",
]
