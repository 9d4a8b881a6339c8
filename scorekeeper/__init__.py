"""
Head-to-head table tennis scorekeeper: rule sets, event-log match state,
serve rotation, deuce handling, undo and player statistics.
"""

__version__ = "0.1.0"
