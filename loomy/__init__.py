"""A resizable thread worker pool with timeouts, cancellation contexts and lifecycle hooks."""

__version__ = "0.1.0"
__all__ = ["jobcontext", "worker", "pool"]