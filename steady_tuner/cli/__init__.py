"""Command line interface for Steady Tuner."""
