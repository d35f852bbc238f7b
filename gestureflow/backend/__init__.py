"""
GestureFlow Backend - Diagram controller, gesture input pipeline,
persistence and the FastAPI application.
"""
