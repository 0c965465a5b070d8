from __future__ import annotations

__all__ = ["SummaryBot"]


def __getattr__(name: str):
    if name == "SummaryBot":
        from src.app.bot_orchestrator import SummaryBot

        return SummaryBot
    raise AttributeError(name)
