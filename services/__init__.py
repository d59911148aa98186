"""Scheduling engine: slots, placements, turn detection and orchestration."""
