"""Confirm step: validate an operator-approved operation against current state and apply it."""
