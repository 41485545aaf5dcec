"""
API schemas for CardChat, organized by domain.
"""
