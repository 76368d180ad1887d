"""
Test Suite for Media Relay Service

This package contains tests for the Media Relay Service including:
- Unit tests for the codec, splitter, registry, engine and endpoints
- Integration tests for the signaling WebSocket endpoint
"""
