"""Residual-risk sweeps."""
