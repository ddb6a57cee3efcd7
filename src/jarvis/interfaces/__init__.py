"""
interfaces/__init__.py — Jarvis user-facing interfaces
"""
