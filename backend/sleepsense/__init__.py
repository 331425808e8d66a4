"""
SleepSense - Backend Package

This package contains the sleep-anxiety coach core:
- Local longitudinal data store (profile, entries, chat transcript, settings)
- Rolling context derived from recent check-ins
- Crisis detection and the ordered response rule table
- A small local API for the UI collaborator
"""

__version__ = "0.1.0"
