"""
Core package for DealSentinel, a game price-drop tracker.

This package searches the CheapShark deals API, keeps a small collection of
tracked games with target prices, and periodically re-polls the API to send a
notification when a game drops to or below its target.

To run the poller headless:
>>> python -m deal_sentinel.main

To run the HTTP surface (the poller starts with it):
>>> uvicorn deal_sentinel.web:app

"""

from importlib.metadata import version as _version

__all__ = [
    "__version__",
]

try:
    __version__ = _version("deal-sentinel")  # type: ignore [misc]
except Exception:
    __version__ = "0.0.0"
