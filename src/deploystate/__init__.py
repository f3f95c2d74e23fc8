"""
deploystate: checkpoint persistence for deployment environments.

Reads, writes and retires the on-disk checkpoint that records an
environment's configuration and its most recently deployed resources.
"""

__version__ = "0.1.0"
