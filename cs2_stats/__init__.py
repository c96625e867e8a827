"""cs2-stats — stats CS2 pro (HLTV) : collecte, stockage et API dashboard."""

__version__ = "0.1.0"
