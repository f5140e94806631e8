"""Feedback recommendations backend.

Accepts free-text feedback, enriches it asynchronously with a generative model
and serves the resulting recommendation records back to their owners.
"""

__version__ = "1.0.0"
