"""agentloop - a console agent that lets a model drive local tools."""

__version__ = "0.1.0"

from agentloop.config import Config

__all__ = ["Config", "__version__"]
