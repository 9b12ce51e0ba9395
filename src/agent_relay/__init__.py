"""Chat front-end that routes messages to completion models, a local agent and hosted agents."""

__version__ = "0.1.0"
