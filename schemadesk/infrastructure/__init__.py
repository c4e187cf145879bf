"""Infrastructure Layer: Contains concrete implementations and adapters.

Connects the client to the outside world (HTTP transport, configuration
files, terminal UI) and hosts the resilience, authentication and
interceptor machinery the orchestrator composes.
"""
