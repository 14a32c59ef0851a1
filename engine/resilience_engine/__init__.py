"""
Resilience Engine

Test orchestrator for a distributed service deployment supporting:
- Readiness polling with bounded retry
- Named fault-injection scenarios driven through docker compose
- Concurrent load generation with latency/throughput metrics
- Required/optional suite aggregation into a single verdict
"""

__version__ = "1.0.0"
__author__ = "Resilience Engine Team"

from resilience_engine.config import Settings, get_settings

__all__ = ["__version__", "Settings", "get_settings"]
