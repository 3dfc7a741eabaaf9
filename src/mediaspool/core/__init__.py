"""Service orchestration.

The orchestrator wires stores and pipeline components to their periodic
triggers; the daemon owns process lifecycle, locking and signals.
"""
