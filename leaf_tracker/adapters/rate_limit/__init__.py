"""Rate limiting adapters.

A small abstraction layer so the admission policy can start with an
in-process registry and later move to a shared store without changing the
API layer.
"""
