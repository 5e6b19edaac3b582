"""Prediction and value-bet engine for player prop markets."""

__version__ = "0.1.0"
