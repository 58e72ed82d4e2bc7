"""Conditional queries: every branch compiled up front, one dispatched per call."""
from brickorm.query.conditional import CompiledBranch, ConditionalQuery, SelectedBranch
from brickorm.query.skeleton import Arg, When

__all__ = ["Arg", "CompiledBranch", "ConditionalQuery", "SelectedBranch", "When"]
