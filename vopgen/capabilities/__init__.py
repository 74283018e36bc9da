from .registry import CAPABILITIES, Capability
from .composition import ResolvedDefaults, compose
