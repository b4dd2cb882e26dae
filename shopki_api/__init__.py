"""Shopki marketplace backend package."""
