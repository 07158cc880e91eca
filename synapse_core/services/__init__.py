"""
Core services for the application.

This package contains the dosing rules, the dose ledger, the sick mode state
machine, adherence and goal evaluation, and the tracker that ties them together.
"""

from .adherence import AdherenceCalculator, AdherenceSummary
from .dose_ledger import DoseLedger, DoseSlot, Result
from .goals import GoalEvaluator
from .integrated_tracking import AlertEvent, AlertManager, RecoveryTracker
from .medication_catalog import MedicationCatalog
from .sick_mode import CheckInOutcome, PRNStatus, SickModeController

__all__ = [
    "AdherenceCalculator",
    "AdherenceSummary",
    "AlertEvent",
    "AlertManager",
    "CheckInOutcome",
    "DoseLedger",
    "DoseSlot",
    "GoalEvaluator",
    "MedicationCatalog",
    "PRNStatus",
    "RecoveryTracker",
    "Result",
    "SickModeController",
]
