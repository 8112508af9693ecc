"""Utilities for judging electric-vehicle range against a historical GPS trace.

This package provides modular building blocks to filter raw location samples,
compute distances and velocities, correct transport modes, segment trips,
aggregate daily driving summaries, and derive range-compatibility statistics.
"""
