"""
Casino - Two-player Casino card game engine

A deterministic rules engine for the fishing card game Casino, with a
session orchestrator and a real-time API. Provides:
- Deck, deal and state management
- Action determination for card drops
- Move handlers for captures, builds and staging stacks
- Round bookkeeping and scoring
- Bot policies for computer play
"""

__version__ = "0.1.0"
