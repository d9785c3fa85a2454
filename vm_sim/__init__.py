"""Time-shared task scheduling for simulated virtual machines."""

__version__ = "0.1.0"
