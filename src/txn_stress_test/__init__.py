"""Transactional key-value workload generator and benchmark driver."""

__version__ = "0.1.0"
