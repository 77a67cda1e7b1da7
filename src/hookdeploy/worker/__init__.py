"""Worker - deploy queue, run loop and request handling."""

from hookdeploy.worker.models import WorkerStatus
from hookdeploy.worker.worker import Observer, Worker

__all__ = ["Observer", "Worker", "WorkerStatus"]
