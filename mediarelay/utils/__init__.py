"""
Helpers shared across the relay
"""
