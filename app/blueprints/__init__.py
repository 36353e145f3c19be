"""
Collaborative Annotation Engine
Blueprint registry.

    health_bp      → /api/v1/health/*
    comment_bp     → comments, status lifecycle, ledger analytics
    annotation_bp  → decorations and hit-testing for the editor
"""
