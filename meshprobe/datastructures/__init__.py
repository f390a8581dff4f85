"""Shared datastructures and type aliases for meshprobe."""
