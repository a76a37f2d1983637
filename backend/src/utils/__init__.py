"""
Utility modules for the therapy calendar application.

This package contains shared utility functions and helpers used across
the application, chiefly the datetime and time zone utilities.
"""
