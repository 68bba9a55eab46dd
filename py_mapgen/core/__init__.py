"""
Core map generation functionality.

Entry point is ``py_mapgen.core.world.GenerationSession``.
"""
