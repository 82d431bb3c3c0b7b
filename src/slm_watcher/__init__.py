"""
Stop-loss-market order watcher.

Tracks SL-M exit orders placed with the broker and, when the exchange cancels
one for triggering outside its execution range, squares off the unexecuted
quantity with a market order that is itself watched.
"""

__version__ = "0.1.0"
