"""
Information criteria (DIC and WAIC) for the random-intercept logit samplers.

Both criteria are computed from the summaries the sampler accumulates
while running, never by re-scanning stored draws:

- p_DIC  = 2 (log p(y | eta_hat) - mean_r log p(y | eta_r))
- DIC    = -2 log p(y | eta_hat) + 2 p_DIC
- p_WAIC = 2 sum_i (lppd_i - mean_r log p(y_i | eta_r))
- WAIC   = sum_i lppd_i - p_WAIC

where lppd_i is the log of the posterior mean of the likelihood of y_i
(Gelman, Hwang & Vehtari, 2014). Note that WAIC is on the log-predictive
scale here: larger is better, while smaller DIC is better.

Dependencies: numpy, pandas
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Mapping

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from ..dp_ranef.ranef_dp import LogitDPFit

IC_COLUMNS = ["DIC", "WAIC", "p", "p_DIC", "p_WAIC"]


def information_criteria(model: "LogitDPFit") -> Dict[str, float]:
    """Compute DIC, WAIC and their effective numbers of parameters.

    Parameters
    - model: result of `fit_logit` (or of one of the samplers).

    Returns
    - dict with keys:
      - 'DIC': deviance information criterion.
      - 'WAIC': widely applicable information criterion (log scale).
      - 'p': raw number of regression parameters.
      - 'p_DIC': effective number of parameters for DIC.
      - 'p_WAIC': effective number of parameters for WAIC.
    """
    loglik = np.asarray(model.loglik, dtype=float)
    if loglik.size == 0:
        raise ValueError("the fitted model has no retained draws")
    lppd = np.asarray(model.lppd, dtype=float)
    log_pdf = np.asarray(model.log_pdf, dtype=float)

    p_DIC = 2.0 * (float(model.loglik_hat) - float(np.mean(loglik)))
    DIC = -2.0 * float(model.loglik_hat) + 2.0 * p_DIC

    p_WAIC = 2.0 * float(np.sum(lppd - log_pdf))
    WAIC = float(np.sum(lppd)) - p_WAIC

    return {"DIC": DIC, "WAIC": WAIC, "p": int(model.parameters), "p_DIC": p_DIC, "p_WAIC": p_WAIC}


def ic_table(models: Mapping[str, "LogitDPFit"]) -> pd.DataFrame:
    """Stack `information_criteria` of several fitted models into one DataFrame (one row per model)."""
    rows = {name: information_criteria(m) for name, m in models.items()}
    table = pd.DataFrame.from_dict(rows, orient="index", columns=IC_COLUMNS)
    table["p"] = table["p"].astype(int)
    table.index.name = "model"
    return table
