"""
Core infrastructure: configuration, logging, persistence, security and
outbound HTTP helpers shared by every service.
"""
