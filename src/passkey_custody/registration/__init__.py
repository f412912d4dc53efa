from .orchestrator import RegistrationOrchestrator, RegistrationState

__all__ = ["RegistrationOrchestrator", "RegistrationState"]
