# ward_planner/sync/__init__.py
"""
Client-side synchronization of a ward plan.

The SyncController holds the active TenantSession, applies edits locally
and persists them through a gateway after a debounce period. Change channels
deliver plans written by other clients. Import from the submodules
(`controller`, `gateway`, `debounce`, `notifications`, `session`).
"""
