"""
Permission catalog and authorization feature module.

Implements scoped Role-Based Access Control (RBAC): permissions are tagged
with a global, organization or event scope and granted through roles.
"""
