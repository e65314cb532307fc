"""
SkyStatus qualification cycle engine.

Turns a traveler's flights and manual XP adjustments into qualification
cycles, rollover and status level-ups.
"""

__version__ = "1.0.0"
