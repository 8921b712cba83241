"""Domain layer: directory kinds, formats, bindings, and errors.

This layer depends only on stdlib and pydantic.
It must never import from services, infrastructure, plugins, or config.
"""
