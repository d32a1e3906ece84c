"""
Model comparison for the random-intercept logit samplers.

Currently included:
- `ic.information_criteria`: DIC, WAIC and effective numbers of parameters
  from the running summaries of a fitted chain.
- `ic.ic_table`: the same quantities for several fits as a pandas DataFrame.

Dependencies: numpy, pandas
"""

from .ic import IC_COLUMNS, ic_table, information_criteria

__all__ = ["IC_COLUMNS", "ic_table", "information_criteria"]
