"""Session orchestration: controller, silence watchdog, prompt cycle."""

from tutorkit.session.controller import SessionController
from tutorkit.session.prompts import ProactivePromptCycle
from tutorkit.session.watchdog import SilenceWatchdog

__all__ = ["ProactivePromptCycle", "SessionController", "SilenceWatchdog"]
