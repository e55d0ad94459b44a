"""Scheduler entry points for shard and subscriber-sync processes."""
