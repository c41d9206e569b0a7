"""Attendance Routers Package"""
from .attendance import router as attendance_router
from .justifications import router as justifications_router

__all__ = ["attendance_router", "justifications_router"]
