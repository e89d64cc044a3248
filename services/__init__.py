"""
Service layer - request orchestration on top of the core drivers.
"""
