"""
Jarvis — personal assistant core.

Turns a free-form model reply into a cleaned response plus an optional
persisted effect (task, reminder, note), with a keyword fallback when the
upstream model cannot be reached.
"""

__version__ = "0.1.0"
