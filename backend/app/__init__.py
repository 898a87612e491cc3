"""
WikiGaiaLab Workflow Backend Package

This package contains the FastAPI backend for the WikiGaiaLab problem
workflow, including:

- main.py: FastAPI application factory
- workflow/: status policy, domain events, and errors
- services/: workflow engine, development queue, notifications
"""

__version__ = "1.0.0"
