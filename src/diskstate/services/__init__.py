"""Service layer: persistence handles and the declaration decorator.

Services may import from domain, infrastructure, config, and plugins.
"""
