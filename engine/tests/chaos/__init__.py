"""
Chaos/failure injection testing suite.

Drives the recovery scenarios against the in-process fake cluster:
- Tier 1: Single service faults (restart, gateway outage)
- Tier 2: Storage faults (node loss, quorum loss)
- Tier 4: Whole-system recovery (full restart, redeploy)
"""
