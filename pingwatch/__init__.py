"""pingwatch — periodic endpoint health checks with alert dispatch."""

__version__ = "0.1.0"
