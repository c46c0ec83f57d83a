# agent_workflow/config.py
"""Runtime configuration for the workflow engine, read from the environment."""

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)


class EngineConfig:
    """Settings for the model gateway, the step loop and the HTTP service."""

    def __init__(self):
        # Model provider
        self.openai_api_key: Optional[str] = None
        self.openai_base_url: Optional[str] = None
        self.model = "gpt-4o-mini"
        self.temperature = 0.7
        self.request_timeout = 60.0
        # Retries are off: a failed model call fails the run
        self.max_retries = 0

        # Engine guards
        self.max_tool_rounds = 10
        self.max_steps = 1000

        # HTTP service: background runs kept for polling
        self.max_stored_runs = 1000

        self.log_level = "INFO"

        self._load_from_env()

    def _env_number(self, key: str, default, cast):
        raw = os.environ.get(key, "").strip()
        if not raw:
            return default
        try:
            return cast(raw)
        except ValueError:
            logger.warning("ignoring invalid %s=%r; using %r", key, raw, default)
            return default

    def _load_from_env(self):
        """Load configuration from environment variables."""
        self.openai_api_key = os.environ.get("OPENAI_API_KEY") or None
        self.openai_base_url = os.environ.get("OPENAI_BASE_URL") or None
        self.model = os.environ.get("AGENT_WORKFLOW_MODEL") or self.model
        self.temperature = self._env_number("AGENT_WORKFLOW_TEMPERATURE", self.temperature, float)
        self.request_timeout = self._env_number("AGENT_WORKFLOW_REQUEST_TIMEOUT", self.request_timeout, float)
        self.max_retries = self._env_number("AGENT_WORKFLOW_MAX_RETRIES", self.max_retries, int)
        self.max_tool_rounds = self._env_number("AGENT_WORKFLOW_MAX_TOOL_ROUNDS", self.max_tool_rounds, int)
        self.max_steps = self._env_number("AGENT_WORKFLOW_MAX_STEPS", self.max_steps, int)
        self.max_stored_runs = self._env_number("AGENT_WORKFLOW_MAX_STORED_RUNS", self.max_stored_runs, int)
        self.log_level = (os.environ.get("AGENT_WORKFLOW_LOG_LEVEL") or self.log_level).upper()

    def reload(self):
        self.__init__()


config = EngineConfig()
