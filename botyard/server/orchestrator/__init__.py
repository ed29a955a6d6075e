"""Bundle sandbox orchestration: registry and lifecycle controller."""
from botyard.server.orchestrator.controller import LifecycleController
from botyard.server.orchestrator.registry import BotInstance, BotRegistry


__all__ = ["BotInstance", "BotRegistry", "LifecycleController"]
