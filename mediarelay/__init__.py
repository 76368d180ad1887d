"""
Media Relay Service
Live video relay between one streamer and many viewers per room
"""

__version__ = "1.0.0"
