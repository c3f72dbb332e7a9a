"""Configuration models for Nitpix."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..core.constants import (
    AGENT_EXECUTABLE,
    DEFAULT_AGENT_TIMEOUT,
    DEFAULT_ALLOWED_TOOLS,
    DEFAULT_MAX_CRASHES,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_TURNS,
    DEFAULT_PORT,
    IDLE_POLL_INTERVAL,
    KILL_GRACE_PERIOD,
    RECONNECT_BASE_DELAY,
    RECONNECT_MAX_DELAY,
    SHUTDOWN_WAIT,
)


class ReviewConfig(BaseModel):
    """Contents of ``.review/config.json``."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    server_port: int = DEFAULT_PORT
    project_root: Optional[str] = None


class WatcherOptions(BaseModel):
    """Settings for the dispatch loop and the agent it spawns."""

    max_turns: int = Field(DEFAULT_MAX_TURNS, ge=0, description="Agent turn budget; 0 leaves it to the agent")
    allowed_tools: str = Field(DEFAULT_ALLOWED_TOOLS, description="Comma-separated tool allow-list")
    agent_timeout: float = Field(DEFAULT_AGENT_TIMEOUT, ge=0, description="Seconds before the agent is killed; 0 disables")
    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0, description="Attempts after which a task is skipped; 0 disables")
    max_crashes: int = Field(DEFAULT_MAX_CRASHES, ge=0, description="Agent crashes after which a task is skipped; 0 disables")
    agent_command: str = AGENT_EXECUTABLE
    kill_grace: float = Field(KILL_GRACE_PERIOD, ge=0)
    shutdown_wait: float = Field(SHUTDOWN_WAIT, ge=0)
    reconnect_base: float = Field(RECONNECT_BASE_DELAY, gt=0)
    reconnect_max: float = Field(RECONNECT_MAX_DELAY, gt=0)
    poll_interval: float = Field(IDLE_POLL_INTERVAL, ge=0, description="Idle resync period; 0 disables")
