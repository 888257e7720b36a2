"""liftplan: workout plan editing with reviewable changes and exercise statistics."""

__version__ = "0.1.0"
