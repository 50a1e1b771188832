"""
Resolver implementations for the generated entity operations
"""
