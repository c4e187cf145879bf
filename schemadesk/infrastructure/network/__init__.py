"""Connectivity monitoring and base URL probing."""
