"""
Q&A Configuration Settings

Defaults for the interview engine and its LLM collaborators. Values can be
set here as defaults or overridden via environment variables or at runtime.
"""

import logging
import os

from qna.llm import get_default_config, list_providers
from qna.types import TraversalMode

# collaborators other than the question oracle, each with its own provider/model pair
COLLABORATOR_ROLES = ("requirements", "simplify", "mockup", "knowledge")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _env_int(name: str) -> int | None:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


class QnAConfig:
    """Configuration class for the interview engine."""

    def __init__(self):
        questions_provider, questions_model = get_default_config("questions")
        requirements_provider, requirements_model = get_default_config("requirements")
        simplify_provider, simplify_model = get_default_config("simplify")
        mockup_provider, mockup_model = get_default_config("mockup")
        knowledge_provider, knowledge_model = get_default_config("knowledge")

        # LLM collaborators
        self.provider: str = os.getenv("QNA_PROVIDER", questions_provider)
        self.model: str = os.getenv("QNA_MODEL", questions_model)
        self.requirements_provider: str = os.getenv("QNA_REQUIREMENTS_PROVIDER", requirements_provider)
        self.requirements_model: str = os.getenv("QNA_REQUIREMENTS_MODEL", requirements_model)
        self.simplify_provider: str = os.getenv("QNA_SIMPLIFY_PROVIDER", simplify_provider)
        self.simplify_model: str = os.getenv("QNA_SIMPLIFY_MODEL", simplify_model)
        self.mockup_provider: str = os.getenv("QNA_MOCKUP_PROVIDER", mockup_provider)
        self.mockup_model: str = os.getenv("QNA_MOCKUP_MODEL", mockup_model)
        self.knowledge_provider: str = os.getenv("QNA_KNOWLEDGE_PROVIDER", knowledge_provider)
        self.knowledge_model: str = os.getenv("QNA_KNOWLEDGE_MODEL", knowledge_model)
        self.request_timeout: float = float(os.getenv("QNA_REQUEST_TIMEOUT", "60"))

        # Traversal
        self.traversal_mode: str = os.getenv("QNA_TRAVERSAL_MODE", TraversalMode.BFS.value)
        self.max_questions: int | None = _env_int("QNA_MAX_QUESTIONS")
        self.settle_delay: float = float(os.getenv("QNA_SETTLE_DELAY", "1.0"))

        # Persistence and logging
        self.session_file: str = os.getenv("QNA_SESSION_FILE", "qna_session.json")
        self.log_level: str = os.getenv("QNA_LOG_LEVEL", "WARNING")

    def update(self, **kwargs) -> 'QnAConfig':
        """Update configuration values at runtime."""
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
            else:
                raise ValueError(f"Unknown configuration parameter: {key}")
        return self

    def role_config(self, role: str) -> tuple[str, str]:
        """Provider/model pair for a collaborator role; "questions" is the oracle."""
        if role == "questions":
            return self.provider, self.model
        if role not in COLLABORATOR_ROLES:
            raise ValueError(f"Unknown role '{role}'. Available: {['questions', *COLLABORATOR_ROLES]}")
        return getattr(self, f"{role}_provider"), getattr(self, f"{role}_model")

    def validate(self) -> bool:
        """Validate value ranges and the provider name."""
        errors = []
        for role in ("questions", *COLLABORATOR_ROLES):
            provider, _ = self.role_config(role)
            if provider not in list_providers():
                errors.append(f"unknown provider {provider!r} for {role}")
        if self.traversal_mode not in {m.value for m in TraversalMode}:
            errors.append(f"unknown traversal mode {self.traversal_mode!r}")
        if self.max_questions is not None and self.max_questions < 1:
            errors.append("max_questions must be at least 1")
        if self.settle_delay < 0:
            errors.append("settle_delay must not be negative")
        if self.request_timeout <= 0:
            errors.append("request_timeout must be positive")

        if errors:
            raise ValueError(f"Invalid configuration: {errors}")

        return True


# Global configuration instance
config = QnAConfig()


def set_config(**kwargs) -> QnAConfig:
    """Convenience function to update global configuration."""
    return config.update(**kwargs)


def get_config() -> QnAConfig:
    """Get the global configuration instance."""
    return config


def configure_logging(level: str | int | None = None) -> None:
    """Root logging setup for the CLI; library modules only create loggers."""
    level = level or config.log_level
    if isinstance(level, str):
        level = level.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)
