"""
Data models for Media Relay Service
"""
