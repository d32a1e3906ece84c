"""
seqlogit: Gibbs samplers for sequential logistic regressions with
Dirichlet-process mixture random effects and P-spline terms.

Subpackages
- `seqlogit.dp_ranef`: samplers, dispatcher and posterior summaries.
- `seqlogit.information_criteria`: DIC and WAIC.
"""

from .dp_ranef import (
    METHODS,
    LogitDPFit,
    LogitPrior,
    compare_models,
    fit_logit,
    posterior_summary,
)
from .information_criteria import ic_table, information_criteria

__all__ = [
    "METHODS",
    "LogitDPFit",
    "LogitPrior",
    "compare_models",
    "fit_logit",
    "ic_table",
    "information_criteria",
    "posterior_summary",
]

__version__ = "0.1.0"
