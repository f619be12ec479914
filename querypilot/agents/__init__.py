"""Agents that route, generate, validate and execute SQL."""

from querypilot.agents.analyst import AnalystAgent
from querypilot.agents.base import BaseAgent
from querypilot.agents.classifier import ClassifierAgent
from querypilot.agents.executor import ExecutorAgent, diagnose_aggregates
from querypilot.agents.sql import SQLAgent
from querypilot.agents.validator import ValidatorAgent

__all__ = [
    "AnalystAgent",
    "BaseAgent",
    "ClassifierAgent",
    "ExecutorAgent",
    "SQLAgent",
    "ValidatorAgent",
    "diagnose_aggregates",
]
