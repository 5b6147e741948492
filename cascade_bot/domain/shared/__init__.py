"""
Shared kernel for cross-domain primitives (models, repositories, errors).
Intentionally does not import submodules eagerly to avoid circular dependencies.
"""

__all__: list[str] = []
