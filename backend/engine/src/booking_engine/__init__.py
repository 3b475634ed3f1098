"""Availability, pricing, refund and credit engine for short-term rental bookings."""
