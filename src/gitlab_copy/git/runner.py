"""Asynchronous execution of git subcommands."""

import asyncio
import os
import re
from pathlib import Path
from typing import List, Optional, Union

from loguru import logger

# Output lines longer than the default 64 KiB stream limit are legal for git.
STREAM_LIMIT = 1024 * 1024

_CREDENTIALS = re.compile(r'(?P<scheme>https?://)(?P<userinfo>[^/@\s]+)@')


def mask_credentials(text: str) -> str:
    """Hide the userinfo part of any http(s) URL in ``text``."""
    return _CREDENTIALS.sub(r'\g<scheme>***TOKEN***@', text)


class GitCommandError(Exception):
    """A git command exited with a non-zero status."""

    def __init__(self, command: str, returncode: int, output: List[str]):
        """Initialize git command error.

        Args:
            command: Masked command line
            returncode: Process exit status
            output: Combined output lines of the command
        """
        tail = ' | '.join(output[-5:]) if output else 'no output'
        super().__init__(
            f'git {command} failed with exit code {returncode}: {tail}'
        )
        self.command = command
        self.returncode = returncode
        self.output = output


class GitTimeoutError(Exception):
    """A git command did not finish within the configured bound."""

    def __init__(self, command: str, timeout: float):
        super().__init__(f'git {command} timed out after {timeout} seconds')
        self.command = command
        self.timeout = timeout


class GitRunner:
    """Runs git subcommands without blocking the event loop.

    Each call suspends only the awaiting task until the subprocess exits and
    returns its stdout and stderr lines in arrival order.
    """

    def __init__(self, executable: str = 'git', timeout: float = 7200):
        """Initialize git runner.

        Args:
            executable: Git executable to invoke
            timeout: Maximum seconds a single command may run
        """
        self.executable = executable
        self.timeout = timeout
        self.logger = logger.bind(component='GitRunner')

    async def run(
        self,
        args: List[str],
        cwd: Union[str, Path],
        timeout: Optional[float] = None,
    ) -> List[str]:
        """Run ``git <args>`` in ``cwd``.

        Args:
            args: Arguments passed to git
            cwd: Working directory of the command
            timeout: Overrides the runner's default bound

        Returns:
            Combined output lines, blank lines dropped

        Raises:
            GitCommandError: If git exits with a non-zero status
            GitTimeoutError: If git runs longer than the timeout
        """
        command = mask_credentials(' '.join(args))
        timeout = timeout or self.timeout
        self.logger.info(f'git {command} (in {cwd})')

        env = dict(os.environ)
        env['GIT_TERMINAL_PROMPT'] = '0'

        process = await asyncio.create_subprocess_exec(
            self.executable,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(cwd),
            env=env,
            limit=STREAM_LIMIT,
        )

        output: List[str] = []
        try:
            await asyncio.wait_for(
                asyncio.gather(
                    self._collect(process.stdout, output),
                    self._collect(process.stderr, output),
                    process.wait(),
                ),
                timeout=timeout,
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            self.logger.error(f'git {command} timed out after {timeout} seconds')
            raise GitTimeoutError(command, timeout)

        if process.returncode != 0:
            raise GitCommandError(
                command, process.returncode, [mask_credentials(line) for line in output]
            )

        return output

    async def _collect(
        self, stream: Optional[asyncio.StreamReader], output: List[str]
    ) -> None:
        """Append decoded lines from ``stream`` to ``output`` until EOF."""
        if stream is None:
            return
        async for raw in stream:
            line = raw.decode('utf-8', errors='replace').rstrip('\r\n')
            if line:
                output.append(line)
                self.logger.debug(mask_credentials(line))

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        """Terminate a runaway git process and reap it."""
        try:
            process.kill()
        except ProcessLookupError:
            return
        await process.wait()
