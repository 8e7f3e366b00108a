import mupe
import numpy as np
import statsmodels.formula.api as smf


# Linear model with 30% multiplicative error
linear_data = mupe.generate_multiplicative_data(
    lambda d: 180 + 6 * d['x1'],
    n_obs=20,
    cv_error=0.3,
    x_ranges={'x1': (10, 100)},
    random_state=42
)

linear = mupe.fit_linear("y ~ x1", linear_data)
ols = smf.ols("y ~ x1", data=linear_data).fit()

print(linear.summary())
print(f"OLS Parameters:  b0={ols.params['Intercept']:.2f}, b1={ols.params['x1']:.4f}")
print(f"MUPE Parameters: b0={linear.params['Intercept']:.2f}, b1={linear.params['x1']:.4f}")
print(f"OLS mean percent error:  {np.mean(ols.resid / ols.fittedvalues):.4%}")
print(f"MUPE mean percent error: {linear.mean_percent_error():.4%}")


# Power model with 40% multiplicative error
power_data = mupe.generate_multiplicative_data(
    lambda d: 90 * d['x1'] ** 0.8,
    n_obs=20,
    cv_error=0.4,
    x_ranges={'x1': (1, 50)},
    random_state=42
)

# Log-space OLS gives a good starting point for log-linear forms
log_ols = smf.ols("np.log(y) ~ np.log(x1)", data=power_data).fit()
start = {'b0': np.exp(log_ols.params['Intercept']), 'b1': log_ols.params['np.log(x1)']}

power = mupe.fit_nonlinear("y ~ b0 * x1^b1", power_data, start=start)
print(power.summary())
print(f"True Parameters: b0=90, b1=0.8")

mupe.plot_fit(power, save_path="scripts/demo/simple_usage_diagnostics.png")
