"""EVM instruction semantics, execution state, an in-memory host and tracing."""

__version__ = "0.1.0"

__all__ = ["arithmetic", "calls", "evmc", "execution_state", "host_ops", "tracing"]