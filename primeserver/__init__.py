"""ZeroMQ load-balancing proxy, graceful-shutdown handling, UDP service discovery and socket helpers."""

__version__ = "0.7.0"

__all__ = ["beacon", "helpers", "proxy", "quiesce", "zmqtools"]