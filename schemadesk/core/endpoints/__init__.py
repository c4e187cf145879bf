"""Endpoint Modules.

Thin callers of the schema builder API. Each class receives a Requester
and turns method calls into endpoint paths, methods and bodies.
"""
