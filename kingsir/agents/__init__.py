from .base import KingsirAgent
from .tiered_agents import EasyAgent, HardAgent, HeuristicAgent, MediumAgent, agent_for

__all__ = [
    "KingsirAgent",
    "HeuristicAgent",
    "EasyAgent",
    "MediumAgent",
    "HardAgent",
    "agent_for",
]
