"""psoarc: read, write and rebuild PSO game-data containers.

Supports AFS and GSL archives, BML bundles (PRS-compressed payloads with PVM
attachments) and the PRS / keyed PRSD compression codecs.
"""

from ._version import __version__

__all__ = ["__version__"]
