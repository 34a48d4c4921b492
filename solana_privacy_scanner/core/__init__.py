"""
Core cross-cutting concerns: domain exceptions shared by the collection
layer, normalizer, scanner, CLI, and API server.
"""
