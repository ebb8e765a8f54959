"""Invoice completeness and BIR compliance service"""

__version__ = "1.0.0"
