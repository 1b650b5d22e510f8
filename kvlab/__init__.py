"""Simulated RPC network, versioned key/value service, history model and MapReduce tools."""

__version__ = "0.1.0"