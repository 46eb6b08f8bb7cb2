"""
Agent module for the Smart Wi-Fi Agent.
Handles telemetry, liveness probing, action execution and the evaluation loop.
"""

from agent.telemetry import TelemetryProvider, LinuxTelemetryProvider, TelemetryUnavailable
from agent.liveness import LivenessChecker, InternetLivenessChecker
from agent.executor import ActionExecutor, NmcliActionExecutor
from agent.state import StatePublisher
from agent.main import Agent

__all__ = [
    'TelemetryProvider',
    'LinuxTelemetryProvider',
    'TelemetryUnavailable',
    'LivenessChecker',
    'InternetLivenessChecker',
    'ActionExecutor',
    'NmcliActionExecutor',
    'StatePublisher',
    'Agent',
]
