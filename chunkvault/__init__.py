"""Split files into encrypted chunks on a blob store and rebuild them."""

from .config import Config, Credentials, RetryPolicy, load_config
from .core.crypto import generate_key
from .downloader import reconstruct, reconstruct_file
from .stores import CloudinaryBlobStore, FileSystemBlobStore, create_store
from .transport import Transport
from .uploader import split_file

__version__ = "0.1.0"

__all__ = [
    "Config",
    "Credentials",
    "RetryPolicy",
    "load_config",
    "generate_key",
    "split_file",
    "reconstruct",
    "reconstruct_file",
    "Transport",
    "CloudinaryBlobStore",
    "FileSystemBlobStore",
    "create_store",
]
