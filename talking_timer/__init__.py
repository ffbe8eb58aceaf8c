"""
Talking Timer - spoken countdown announcements

This is the root package for Talking Timer. It turns a compact announcement
notation ("1/2 30s last20 allLast10") and a countdown duration into a schedule
of spoken progress messages, then dispatches them while the countdown runs.

Core modules:
- time_codec: Duration parsing, time components and display formatting
- audio: End-of-countdown chime rendering and playback
- utils: Environment-style value parsing helpers
- countdown: Notation parser, schedule compiler, tick dispatcher and speech adapters
"""

__version__ = "0.4.2"
