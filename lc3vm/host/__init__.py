from .base import HostIO, HostIOError, HostInterrupted
from .buffered import BufferedHostIO

__all__ = ['HostIO', 'HostIOError', 'HostInterrupted', 'BufferedHostIO']
