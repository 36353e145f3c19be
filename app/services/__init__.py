"""
Collaborative Annotation Engine
Service layer — owns business rules and transaction control.
"""
