"""
tracelog: trace-correlated structured logging.
"""

__version__ = "0.1.0"


def __getattr__(name: str):
    if name in {"configure_logging", "get_logger", "CorrelatedLogger"}:
        from tracelog import logging as _logging

        return getattr(_logging, name)
    raise AttributeError(f"module 'tracelog' has no attribute {name}")


__all__ = ["configure_logging", "get_logger", "CorrelatedLogger", "__version__"]
