"""Kernel – error hierarchy and time primitives shared by every layer."""
