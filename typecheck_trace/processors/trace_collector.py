"""
Runs the compiler with tracing enabled as an external process.
"""

import asyncio
import logging
import os
from typing import List, Optional

logger = logging.getLogger(__name__)


class TraceCollector:
    """Starts ``tsc --generateTrace`` (or a configured equivalent) for a project."""

    def __init__(self, command: List[str]):
        """
        Args:
            command: Command line template; ``{trace_dir}`` and ``{project_path}``
                     are substituted in every argument
        """
        self.command = command
        self._process: Optional[asyncio.subprocess.Process] = None

    def build_command(self, project_path: str, trace_dir: str) -> List[str]:
        return [part.format(trace_dir=trace_dir, project_path=project_path) for part in self.command]

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def collect(self, project_path: str, trace_dir: str) -> int:
        """
        Run one trace collection and wait for it to finish.

        The compiler exits non-zero when the project has type errors but still
        writes a complete trace, so the exit code is only logged.

        Args:
            project_path: tsconfig.json or the directory containing it
            trace_dir: Directory the trace and type files are written to

        Returns:
            Exit code of the process
        """
        os.makedirs(trace_dir, exist_ok=True)
        cwd = project_path if os.path.isdir(project_path) else os.path.dirname(project_path) or None
        command = self.build_command(project_path, trace_dir)

        logger.info(f"Collecting trace: {' '.join(command)}")
        self._process = await asyncio.create_subprocess_exec(
            *command,
            cwd=cwd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
        output, _ = await self._process.communicate()
        returncode = self._process.returncode

        if returncode:
            tail = output.decode(errors='replace').strip().splitlines()[-5:]
            logger.warning(f"Trace command exited with {returncode}: {' / '.join(tail)}")
        else:
            logger.info(f"Trace written to {trace_dir}")
        return returncode

    def stop(self) -> None:
        if self.running:
            self._process.terminate()
