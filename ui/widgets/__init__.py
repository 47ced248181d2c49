"""Reusable drawing widgets."""
