"""Token amounts, risk ratios and the immutable position model."""
