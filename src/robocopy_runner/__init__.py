"""Run ROBOCOPY mirror jobs from a JSON manifest and report the outcome."""

__version__ = "0.1.0"
