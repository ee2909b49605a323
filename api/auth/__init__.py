"""
Authentication: users, JWT access tokens, rotating refresh tokens, and the
FastAPI dependencies that resolve the caller of a request.
"""
