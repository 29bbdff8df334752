"""
Telemetry package.

Typed metric facades (counters, up/down counters, value recorders and
observers) over an in-process meter whose batcher supports caller-supplied
histogram boundaries and last-value recorders, exported in the Prometheus
text format.
"""

__version__ = "1.1.0"

from .main import Telemetry  # noqa: E402
from .sdk.meter import Observation  # noqa: E402

__all__ = ["Telemetry", "Observation", "__version__"]
