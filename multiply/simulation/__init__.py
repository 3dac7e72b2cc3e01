"""Sizing solvers and simulation result types."""
