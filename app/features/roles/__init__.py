"""
Roles and user-role assignments.

A role bundles permissions of a single scope and, unless global, is bound
to one organization or event. Users hold at most one role per scope key.
"""
