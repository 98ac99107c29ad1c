"""On-disk storage of capture sessions."""

from .file_manager import FileManager, SessionStore, list_frame_files

__all__ = [
    'FileManager',
    'SessionStore',
    'list_frame_files',
]
