"""
Business logic services organized by domain functionality.
"""
