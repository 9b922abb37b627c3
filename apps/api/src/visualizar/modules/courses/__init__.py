"""
Courses module - courses, authors and categories.
"""
