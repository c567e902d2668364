"""
Research Hub - authorization and ownership core for research project management.

Projects, tasks and comments are owned through relationships (lead, member,
assignee, author); every operation is decided by a single policy table.
"""

__version__ = "0.1.0"
