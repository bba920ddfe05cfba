"""
Core domain types, scope resolution and configuration.
"""
