"""Handler bridge - runs user code for one invocation

A handler takes the invocation payload and returns output bytes, or
raises HandlerError. The loop passes output through verbatim.

ShellHandler runs `<resource>.sh` the way a shell custom runtime does:

```
bash -c 'source <resource>.sh && <entrypoint>'
```

with the payload on stdin, stdout captured as the output and stderr
passed through to the host's stderr.
"""

import os
import shlex
import signal
import subprocess
from typing import Callable, Optional, Protocol

from shellrt.config import HandlerIdentity
from shellrt.errors import HandlerError


class Handler(Protocol):
    """Executes user code for one payload"""

    def invoke(self, payload: bytes) -> bytes:
        """Run the handler

        Raises:
            HandlerError: If the handler fails
        """
        ...


def _exit_description(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"terminated by signal {name}"
    return f"exit status {returncode}"


class ShellHandler:
    """Sources a shell script and calls a function defined in it"""

    def __init__(self, identity: HandlerIdentity, task_root: Optional[str] = None, shell: str = "bash"):
        """Create a shell handler

        Args:
            identity: Script resource and entry point
            task_root: Directory holding the script, also the working
                directory of the handler. Relative paths are resolved once,
                here. None uses the current directory.
            shell: Shell executable
        """
        self.identity = identity
        self.task_root = os.path.abspath(task_root) if task_root else None
        self.shell = shell

    def script_path(self) -> str:
        name = self.identity.script_name()
        if self.task_root:
            return os.path.join(self.task_root, name)
        return name

    def command(self) -> list:
        script = f"source {shlex.quote(self.script_path())} && {shlex.quote(self.identity.entrypoint)}"
        return [self.shell, "-c", script]

    def invoke(self, payload: bytes) -> bytes:
        try:
            proc = subprocess.run(
                self.command(),
                input=payload,
                stdout=subprocess.PIPE,
                cwd=self.task_root,
            )
        except OSError as e:
            raise HandlerError(f"failed to start handler: {e}") from e

        if proc.returncode != 0:
            raise HandlerError(_exit_description(proc.returncode))

        return proc.stdout


class FunctionHandler:
    """Adapts an in-process callable `fn(payload) -> bytes`

    Any exception from the callable is reported as a HandlerError carrying
    the exception text.
    """

    def __init__(self, fn: Callable[[bytes], bytes]):
        self.fn = fn

    def invoke(self, payload: bytes) -> bytes:
        try:
            result = self.fn(payload)
        except HandlerError:
            raise
        except Exception as e:
            raise HandlerError(str(e)) from e

        if isinstance(result, str):
            return result.encode("utf-8")
        return bytes(result)
