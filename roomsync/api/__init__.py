"""Shard HTTP surface."""
