"""
droidsync - folder synchronization between a local directory and an
Android device over adb.
"""

__version__ = "0.3.0"
