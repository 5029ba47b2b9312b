"""SwarmEngine - hand-gesture driven particle swarm."""

__version__ = "0.1.0"

from swarm_engine.config import SwarmConfig, FingerMessage, ConfigError, label_for
from swarm_engine.gestures import GestureState
from swarm_engine.classifier import GestureClassifier, GestureResult, FingerCount
from swarm_engine.templates import PoseTemplate, PoseTemplateMatcher, TemplateMatcher, NullMatcher
from swarm_engine.shapes import ShapeLibrary, generate_all_shapes
from swarm_engine.particles import ParticleField, FillPolicy, ModeDescriptor
from swarm_engine.session import AnimationSession, AnimationStateMachine, TransitionEvent
from swarm_engine.profiler import PipelineProfiler
