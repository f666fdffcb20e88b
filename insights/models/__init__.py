from .workspace import Workspace, WorkspaceMember
from .proposal import Proposal, ProposalStatus
from .proposal_view import ProposalView
from .proposal_event import ProposalEvent, EventType

__all__ = [
    "Workspace",
    "WorkspaceMember",
    "Proposal",
    "ProposalStatus",
    "ProposalView",
    "ProposalEvent",
    "EventType",
]
