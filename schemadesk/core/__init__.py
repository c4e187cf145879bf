"""Core Application Layer: Orchestrates use cases and application logic.

Contains the request orchestrator (ApiClient), the endpoint modules built
on it and the command handler used by the CLI.
"""
