"""
Decision engine for the Smart Wi-Fi Agent.
Holds the probation store, the classification rules and the state API.
"""

from engine.probation import ProbationStore, PROBATION_DURATION_SECONDS
from engine.decision import DecisionEngine, RoamDecision, Verdict

__all__ = [
    'ProbationStore',
    'PROBATION_DURATION_SECONDS',
    'DecisionEngine',
    'RoamDecision',
    'Verdict',
]
