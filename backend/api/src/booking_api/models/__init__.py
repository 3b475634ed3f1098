"""API request/response models.

Domain models live in ``booking_engine.models``; these cover HTTP payloads only.
"""
