"""Temporal workflows, activities and worker for the asynchronous fraud check."""
