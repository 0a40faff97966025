"""Metabolic trend and TDEE estimation from weight and intake logs."""

__version__ = "0.1.0"
