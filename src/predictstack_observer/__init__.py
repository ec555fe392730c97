"""predictstack_observer - ingests PredictStack contract events from chainhook or the explorer."""

__version__ = "0.1.0"
