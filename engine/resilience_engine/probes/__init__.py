"""HTTP probes against the deployment under test."""

from resilience_engine.probes.models import ProbeResult, TargetEndpoint

__all__ = ["ProbeResult", "TargetEndpoint"]
