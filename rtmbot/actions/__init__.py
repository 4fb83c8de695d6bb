"""Hear/respond action registries."""

from rtmbot.actions.registry import Action, ActionContext, ActionHandler, ActionRegistry

__all__ = ["Action", "ActionContext", "ActionHandler", "ActionRegistry"]
