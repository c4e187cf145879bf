"""Credential storage and header generation."""
