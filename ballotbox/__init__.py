"""Student election ballot box: one ballot per student, reproducible tallies."""

__version__ = "0.1.0"
