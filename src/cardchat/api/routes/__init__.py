"""
API router - aggregates all endpoints.

Usage in main.py:
    from cardchat.api.routes import router as api_router
    app.include_router(api_router, prefix="/api")
"""

from fastapi import APIRouter

from cardchat.api.routes import auth, chat, chats, health

router = APIRouter()

# Health endpoints (no auth required)
router.include_router(health.router, tags=["Health"])

# OAuth sign-in
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])

# Streaming chat
router.include_router(chat.router, tags=["Chat"])

# Chat persistence
router.include_router(chats.router, tags=["Chats"])

__all__ = ["router"]
