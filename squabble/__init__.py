"""
squabble - group-chat game agent for Squabble.
"""

__version__ = "0.1.0"
__logo__ = "🎮"
