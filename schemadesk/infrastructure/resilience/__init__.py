"""API Resilience Implementations.

Contains the per-key admission queue that honours local and server rate
limits, and the retry executor with linear or exponential backoff.
Bounded Context: API Resilience
"""
