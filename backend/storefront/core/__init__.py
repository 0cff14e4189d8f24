"""
Core package for configuration, logging and security primitives shared by
the API, service and database layers.
"""
