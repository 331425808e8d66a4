"""
SleepSense - API Package

Local REST surface for the UI collaborator.
"""
