# Centralized tooltip/help text used across the app.

STAT_TOOLTIPS = {
    "x": "Observed x-value (independent variable).",
    "y": "Observed y-value (dependent variable).",
    "y_hat": "Predicted y-value from the regression line.",
    "x_dev": "Difference between the x-value and the mean of all x-values.",
    "y_dev": "Difference between the y-value and the mean of all y-values.",
    "residual": "Residual: difference between observed and predicted y-values.",
    "SXX": "Sum of squares of X: total variability of x around its mean. Denominator of the slope.",
    "SCP": "Sum of cross products: how x and y vary together. Positive = positive relationship, negative = negative.",
    "SSres": "Residual sum of squares: variation in y the line does not explain. Smaller is a better fit.",
    "SStot": "Total sum of squares: variation of y around its mean. Baseline for R².",
    "R2": (
        "R² is the share of variance in y explained by x. Ranges from 0 to 1; "
        "1 is a perfect fit, 0 means no linear relationship."
    ),
    "slope": "Slope b₁ = SCP / SXX: change in y for each one-unit increase in x.",
    "intercept": "Intercept b₀ = ȳ − b₁·x̄: predicted y when x is 0.",
}

# Human-readable messages for the undefined-regression sentinels.
DEGENERACY_MESSAGES = {
    "insufficient data": "Add at least 2 points to see the regression.",
    "degenerate: zero x-variance": "All x values are identical, so the slope is undefined. Add a point with a different x.",
    "degenerate: zero y-variance": "All y values are identical, so R² is undefined (the line is flat).",
}
