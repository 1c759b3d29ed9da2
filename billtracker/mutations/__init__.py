"""Mutation package."""

from billtracker.mutations.api import MutationAPI, item_error

__all__ = ["MutationAPI", "item_error"]
