"""
bayboard: job workflow engine and capacity-constrained shop board.
"""

__version__ = "0.1.0"
