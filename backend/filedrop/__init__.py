"""
filedrop: single-use upload tokens with expiring downloads.
"""
__version__ = "1.0.0"
