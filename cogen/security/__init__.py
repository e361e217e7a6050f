"""Admission control primitives for cogen."""

from cogen.security.limiter import AdmissionLimiter, LimiterWindow

__all__ = ["AdmissionLimiter", "LimiterWindow"]
