# -*- coding: utf-8 -*-
"""Public API: multi-rate scheduler, triggers, FSI coupling and regression validation.

Reference collaborators (the planar rigid-body integrator and the
floating-body demo) stay under their own modules and are imported from there.
"""

from .errors import (
    MultirateError,
    StepFailure,
    ConfigurationFailure,
    ValidationFailure,
)
from .engine_api import (
    ContinuumEngine,
    RigidBodyIntegrator,
    RecordingSink,
    CompositeSink,
)
from .triggers import Trigger, TriggerKind, evaluate_trigger
from .time_stepper import TimeStepper
from .coupling import CouplingState, FsiCouplingProtocol
from .scheduler import MultiRateScheduler, RunSummary
from .recording import ObservationRecorder, CouplingRecorder
from .config import RunConfig, SchedulerConfig, CouplingConfig, ValidationConfig, ComparatorConfig, load_config
from .validation import (
    Series,
    ReferenceDatabase,
    EnsembleAverageComparator,
    DtwComparator,
    RegressionValidator,
    ValidationReport,
)

__all__ = [
    # Errors
    "MultirateError",
    "StepFailure",
    "ConfigurationFailure",
    "ValidationFailure",
    # Collaborator contracts
    "ContinuumEngine",
    "RigidBodyIntegrator",
    "RecordingSink",
    "CompositeSink",
    # Time and events
    "Trigger",
    "TriggerKind",
    "evaluate_trigger",
    "TimeStepper",
    # Run loop and coupling
    "CouplingState",
    "FsiCouplingProtocol",
    "MultiRateScheduler",
    "RunSummary",
    "ObservationRecorder",
    "CouplingRecorder",
    # Configuration
    "RunConfig",
    "SchedulerConfig",
    "CouplingConfig",
    "ValidationConfig",
    "ComparatorConfig",
    "load_config",
    # Validation
    "Series",
    "ReferenceDatabase",
    "EnsembleAverageComparator",
    "DtwComparator",
    "RegressionValidator",
    "ValidationReport",
]
