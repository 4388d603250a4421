from trial_merger.merge.cache import MergeCache
from trial_merger.merge.policy import MergePolicy, RowScratch
from trial_merger.merge.row_merger import RowMerger
from trial_merger.merge.session import MergeSession, RowIdentity

__all__ = [
    "MergeCache",
    "MergePolicy",
    "MergeSession",
    "RowIdentity",
    "RowMerger",
    "RowScratch",
]
