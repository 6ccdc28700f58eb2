"""
fiberscope

Live component tree inspection and source navigation for UI host runtimes.
"""

__version__ = "0.1.0"
