from adapters.frame_decoder import decode
from adapters.hitoko import HitokoAdapter

__all__ = ["decode", "HitokoAdapter"]
