"""Google Drive Sync Client (GDSC) - listing and caching engine for Google Drive folders."""

__version__ = '0.1.0'
__license__ = 'MIT'

from .config import Config
from .drive_client import AsyncDriveClient, DriveClient
from .session import BrowseSession

__all__ = ['AsyncDriveClient', 'BrowseSession', 'Config', 'DriveClient']
