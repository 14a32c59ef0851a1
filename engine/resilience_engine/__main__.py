"""Allow `python -m resilience_engine`."""

from resilience_engine.cli import run

run()
