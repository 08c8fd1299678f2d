"""Command interpretation.

The command layer converts a Spanish free-form livestock instruction into a reviewable
`ParseResult` holding proposed operations. Nothing here touches persisted state.
"""
