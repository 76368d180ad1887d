"""
Configuration for Media Relay Service
"""
