"""
Storyreel - narrated short-form story video worker.
"""

__version__ = "1.0.0"
