"""Consultation booking and project workflow API."""
