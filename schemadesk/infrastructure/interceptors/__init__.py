"""Request and response interceptor chains.

Bounded Context: Request Pipeline
"""
