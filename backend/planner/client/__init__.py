"""
client package

Client-side coordination: optimistic cache, selection/batch coordinator,
edit flow and the HTTP adapter. Import submodules directly, e.g.:

    from planner.client.selection import SelectionCoordinator
"""

__all__: list[str] = []
