"""Lifecycle of one coding-agent subprocess."""

import logging
import os
import shlex
import subprocess
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from nitpix.core.constants import AGENT_INSTALL_URL, READ_CHUNK_SIZE
from nitpix.core.stream_parser import StreamJsonParser
from nitpix.models.config import WatcherOptions
from nitpix.services.exceptions import AgentSpawnError

logger = logging.getLogger(__name__)

RecordCallback = Callable[[Dict[str, Any]], None]


class AgentProcess:
    """Spawns the agent, pumps its output and terminates it on request.

    Stdout is decoded incrementally as stream-json and every record is handed
    to ``on_record``. Stderr is only logged.
    """

    def __init__(self, prompt: str, project_root: Union[str, Path], options: WatcherOptions,
                 on_record: Optional[RecordCallback] = None):
        self.prompt = prompt
        self.project_root = str(project_root)
        self.options = options
        self.on_record = on_record
        self.parser = StreamJsonParser()
        self.terminated = False
        self._process: Optional[subprocess.Popen] = None
        self._readers: List[threading.Thread] = []

    def build_command(self) -> List[str]:
        """Agent command line: prompt, tool allow-list, stream-json output and turn budget."""
        command = shlex.split(self.options.agent_command)
        command += [
            '-p', self.prompt,
            '--allowedTools', self.options.allowed_tools,
            '--output-format', 'stream-json',
            '--verbose',
        ]
        if self.options.max_turns:
            command += ['--max-turns', str(self.options.max_turns)]
        return command

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.poll() is None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    def start(self) -> None:
        """Spawn the agent.

        Raises:
            AgentSpawnError: If the agent executable cannot be started
        """
        command = self.build_command()
        try:
            self._process = subprocess.Popen(
                command,
                cwd=self.project_root,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=os.environ.copy(),
            )
        except FileNotFoundError as e:
            raise AgentSpawnError(
                f"Error: '{command[0]}' command not found. Install Claude Code:\n  {AGENT_INSTALL_URL}"
            ) from e
        except OSError as e:
            raise AgentSpawnError(f"Failed to start agent '{command[0]}': {e}") from e

        logger.debug(f"Agent started with PID {self._process.pid}")
        self._readers = [
            threading.Thread(target=self._pump_stdout, name="nitpix-agent-stdout", daemon=True),
            threading.Thread(target=self._pump_stderr, name="nitpix-agent-stderr", daemon=True),
        ]
        for reader in self._readers:
            reader.start()

    def _emit(self, records: List[Dict[str, Any]]) -> None:
        if not self.on_record:
            return
        for record in records:
            try:
                self.on_record(record)
            except Exception as e:
                logger.error(f"Error handling agent output: {type(e).__name__}: {e}")

    def _pump_stdout(self) -> None:
        stream = self._process.stdout
        for chunk in iter(lambda: stream.read1(READ_CHUNK_SIZE), b''):
            self._emit(self.parser.feed(chunk))
        self._emit(self.parser.flush())

    def _pump_stderr(self) -> None:
        for line in self._process.stderr:
            text = line.decode('utf-8', errors='replace').rstrip()
            if text:
                logger.info(f"[agent:err] {text}")

    def wait(self, timeout: Optional[float] = None) -> Optional[int]:
        """Wait for the agent to exit.

        Returns:
            The exit code, or None if ``timeout`` expired first
        """
        try:
            code = self._process.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            return None
        for reader in self._readers:
            # Orphaned grandchildren may keep a pipe open
            reader.join(self.options.kill_grace or None)
        return code

    def terminate(self, grace: Optional[float] = None) -> None:
        """Send SIGTERM, then SIGKILL if the agent is still alive after ``grace`` seconds."""
        if not self.running:
            return
        grace = self.options.kill_grace if grace is None else grace
        self.terminated = True
        try:
            self._process.terminate()
            self._process.wait(timeout=grace)
        except subprocess.TimeoutExpired:
            logger.warning(f"Agent did not exit within {grace:g}s of SIGTERM. Sending SIGKILL.")
            self._process.kill()
        except ProcessLookupError:
            pass
