"""
Utility modules for the clinic reception application.

This package contains shared utility functions and helpers used across
the application, including datetime utilities, patient field validation,
import parsing, and visit query helpers.
"""
