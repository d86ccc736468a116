"""
Domain models and enums.
"""
