"""
Example 2: Linear Multilevel Regression (Continuous Outcome, Clustered Data)
Simulated test scores of pupils nested in schools

Demonstrates:
- ``groups=`` — naming the grouping column of the target rows
- Conditional intervals (``include_random=True``) that use each
  school's estimated effect
- Population-level intervals (``include_random=False``) for schools
  the model has never seen
- Closed-form Student-t PIs against their simulated counterpart
- A Poisson GLMM described directly through ``FittedModel``

    Level 2: Schools (n = 25)
    Level 1: Pupils within schools (30 each)
"""

import warnings

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf

from prediction_intervals import (
    EncodingError,
    FittedModel,
    RandomEffects,
    add_ci,
    add_pi,
    compute_pi,
)

# ============================================================================
# Simulate data
# ============================================================================

rng = np.random.default_rng(7)
n_schools, per_school = 25, 30
school = np.repeat([f"s{i:02d}" for i in range(n_schools)], per_school)
school_effect = rng.normal(0.0, 4.0, n_schools)
hours = rng.uniform(0.0, 10.0, n_schools * per_school)
score = (
    50.0
    + 2.0 * hours
    + np.repeat(school_effect, per_school)
    + rng.normal(0.0, 6.0, n_schools * per_school)
)
pupils = pd.DataFrame({"score": score, "hours": hours, "school": school})

# ============================================================================
# Linear mixed model
# ============================================================================

with warnings.catch_warnings():
    warnings.simplefilter("ignore")
    fit = smf.mixedlm("score ~ hours", pupils, groups=pupils["school"]).fit()

targets = pd.DataFrame({"hours": [2.0, 5.0, 8.0], "school": ["s00", "s01", "s02"]})

conditional = add_ci(targets, fit, groups="school")
conditional = add_pi(conditional, fit, groups="school")
print("Conditional on the estimated school effects")
print(conditional.to_string(index=False))
print()

# A school the model has not seen has no estimated effect.
new_school = pd.DataFrame({"hours": [5.0], "school": ["s99"]})
try:
    add_pi(new_school, fit, groups="school")
except EncodingError as exc:
    print(f"EncodingError: {exc}")

marginal = add_pi(new_school, fit, groups="school", include_random=False)
print("Population-level PI for a new school")
print(marginal.to_string(index=False))
print()

closed = compute_pi(targets, fit, groups="school")
simulated = compute_pi(targets, fit, groups="school", method="boot", random_state=1)
print("Closed-form vs simulated PI bounds")
print(
    pd.DataFrame(
        {
            "closed_lower": closed.lower,
            "sim_lower": simulated.lower,
            "closed_upper": closed.upper,
            "sim_upper": simulated.upper,
        }
    ).round(2)
)
print()

# ============================================================================
# Poisson GLMM from known estimates
# ============================================================================

glmm = FittedModel(
    coef=[1.2, 0.15],
    cov=np.diag([0.010, 0.0004]),
    family="poisson",
    link="log",
    exog_names=("Intercept", "hours"),
    random_effects=RandomEffects(
        group_col="school",
        levels=("s00", "s01", "s02"),
        blups=[[0.3], [0.0], [-0.3]],
        cov=[[0.2]],
    ),
)
absences = add_ci(targets, glmm, random_state=3)
absences = add_pi(absences, glmm, alpha=0.1, random_state=3)
print("Poisson GLMM (simulated intervals)")
print(absences.to_string(index=False))
