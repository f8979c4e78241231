from .config import EngineConfig, PerformanceConfig, AdaptiveConfig
from .errors import LearningEngineError, ShapeMismatchError, InsufficientDataError, PersistenceError
from .types import Action, Transition, TradeOutcome, ControllerState, PerformanceSnapshot
from .utils import set_global_seed
from .rewards import shape_reward
from .buffer import ReplayBuffer
from .network import QNetwork
from .agent import DQNAgent
from .metrics import PerformanceTracker, compute_snapshot
from .controller import AdaptiveController
from .engine import ContinuousLearningEngine

__all__ = [
    "EngineConfig",
    "PerformanceConfig",
    "AdaptiveConfig",
    "LearningEngineError",
    "ShapeMismatchError",
    "InsufficientDataError",
    "PersistenceError",
    "Action",
    "Transition",
    "TradeOutcome",
    "ControllerState",
    "PerformanceSnapshot",
    "set_global_seed",
    "shape_reward",
    "ReplayBuffer",
    "QNetwork",
    "DQNAgent",
    "PerformanceTracker",
    "compute_snapshot",
    "AdaptiveController",
    "ContinuousLearningEngine",
]
