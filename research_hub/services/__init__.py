"""
Services - guarded operations over the store.

- RequestGate: every operation, behind identity + ownership + policy
- MembershipMutator: team changes and task assignment
- KeyedLock: per-project serialization
"""

from research_hub.services.gate import RequestGate
from research_hub.services.locks import KeyedLock
from research_hub.services.membership import MembershipMutator

__all__ = [
    "KeyedLock",
    "MembershipMutator",
    "RequestGate",
]
