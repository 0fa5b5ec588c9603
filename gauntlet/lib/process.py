"""Child processes that can be stopped together with everything they spawned."""

import asyncio
import logging
import os
import signal

logger = logging.getLogger(__name__)


async def kill_process_group(proc: asyncio.subprocess.Process) -> None:
    """SIGKILL the process group of a child started with start_new_session=True.

    Killing only the child leaves grandchildren (e.g. the commands a shell
    started) running with our pipes open, so the wait would never return.
    """
    try:
        os.killpg(proc.pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError:
        logger.warning(f"Could not signal process group {proc.pid}, killing the child only")
        proc.kill()
    await proc.wait()
