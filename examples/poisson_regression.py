"""
Example 1: Poisson Regression (Count Outcome)
Simulated clinic-visit counts

Demonstrates:
- ``add_ci`` — Wald CIs for the mean, and the case-resampling BCa
  bootstrap (``method="boot"``)
- ``add_pi`` — simulated prediction intervals whose bounds are counts
- ``add_probs`` / ``add_quantile`` — Pr(Y ≤ q) and response quantiles
- Chaining ``add_*`` calls with explicit column names
- Quasipoisson and negative binomial fits for over-dispersed counts

The outcome is the number of clinic visits per patient-year, driven by
age (standardised) and a three-level insurance category.  The negative
binomial data set uses the same linear predictor with size θ = 2.
"""

import numpy as np
import pandas as pd
import statsmodels.api as sm
import statsmodels.formula.api as smf

from prediction_intervals import (
    add_ci,
    add_pi,
    add_probs,
    add_quantile,
    compute_pi,
    set_seed,
)

set_seed(42)

# ============================================================================
# Simulate data
# ============================================================================

rng = np.random.default_rng(2024)
n = 400
visits = pd.DataFrame(
    {
        "age": rng.standard_normal(n),
        "plan": rng.choice(["basic", "standard", "premium"], size=n),
    }
)
eta = 0.8 + 0.35 * visits["age"] + visits["plan"].map(
    {"basic": 0.0, "standard": 0.25, "premium": 0.5}
)
visits["y"] = rng.poisson(np.exp(eta))

new_patients = pd.DataFrame(
    {
        "age": [-1.0, 0.0, 1.0, 2.0],
        "plan": ["basic", "standard", "premium", "premium"],
    }
)

# ============================================================================
# Poisson GLM
# ============================================================================

fit = smf.glm("y ~ age + plan", data=visits, family=sm.families.Poisson()).fit()

out = add_ci(new_patients, fit, alpha=0.05, names=("lcb95", "ucb95"))
out = add_ci(out, fit, alpha=0.05, names=("boot_lcb", "boot_ucb"), method="boot", n_sims=500)
out = add_pi(out, fit, alpha=0.1)
out = add_probs(out, fit, 3, comparison="<=")
out = add_quantile(out, fit, 0.9)
print("Poisson GLM")
print(out.to_string(index=False))
print()

# Prediction bounds of a count family are counts.
pi = compute_pi(new_patients, fit, alpha=0.1)
assert np.array_equal(pi.lower, np.round(pi.lower))
assert np.array_equal(pi.upper, np.round(pi.upper))

# ============================================================================
# Over-dispersed counts: quasipoisson and negative binomial
# ============================================================================

mu = np.exp(eta)
visits["y_nb"] = rng.negative_binomial(2.0, 2.0 / (2.0 + mu))

quasi_fit = smf.glm(
    "y_nb ~ age + plan", data=visits, family=sm.families.Poisson()
).fit(scale="X2")
nb_fit = smf.negativebinomial("y_nb ~ age + plan", data=visits).fit(disp=0)

quasi = add_pi(new_patients, quasi_fit, alpha=0.1)
nb = add_pi(new_patients, nb_fit, alpha=0.1)
print(f"Quasipoisson (φ̂ = {quasi_fit.scale:.2f})")
print(quasi.to_string(index=False))
print()
print("Negative binomial")
print(nb.to_string(index=False))
