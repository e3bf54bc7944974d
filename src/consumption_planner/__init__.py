"""Consumption planning and grant budget tracking for cloud compute workloads"""

__version__ = "0.1.0"
