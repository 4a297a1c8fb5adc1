"""
Worker subpackage -- the recognition worker process and the channel that
talks to it.

    WorkerChannel  -- parent side: spawns the process, queues requests
    WorkerServer   -- child side: answers init / read_text / close
"""

from ocr_search.worker.channel import ChannelState, ProcessState, WorkerChannel
from ocr_search.worker.server import WorkerServer
